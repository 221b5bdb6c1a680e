"""应用配置

从环境变量（前缀 DERES_）或 .env 读取，进程启动后不可修改。
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import U8_MAX, Pubkey

DEFAULT_PROGRAM_ID = "9d3b6f0c2a41e57b8c90d1f2e3a4b5c6d7e8f90112233445566778899aabbcc0"

# 唯一有权分配声誉的预言机公钥
DEFAULT_REPUTATION_AUTHORITY = "5c1e9a7d3b2f4e6a8c0d1b3f5a7e9c2d4f6b8a0e1c3d5f7a9b2e4c6d8f0a1b3c"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DERES_",
        env_file=".env",
        case_sensitive=False,
        frozen=True,
        validate_default=True,
    )

    program_id: Pubkey = DEFAULT_PROGRAM_ID
    reputation_authority: Pubkey = DEFAULT_REPUTATION_AUTHORITY

    # 进入 ApprovedToPublish 所需的通过评审数
    min_approvals_for_publish: int = Field(default=10, ge=1, le=U8_MAX)
    # 获取访问权限前论文是否必须已发布
    require_published_for_access: bool = True

    api_host: str = "127.0.0.1"
    api_port: int = 8097
    cors_origins: List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
