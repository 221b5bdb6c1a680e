"""记录地址派生

记录地址由固定标签 + 密钥材料 + bump 经 SHA-256 计算得到，并且必须落在
ed25519 曲线之外，这样任何人都不可能持有该地址对应的私钥。
"""

from typing import List, Sequence, Tuple, Union

from cryptography.hazmat.primitives import hashes

from .errors import PdaMismatch
from .models import PUBKEY_LENGTH

MAX_SEED_LENGTH = 32
MAX_SEEDS = 16
PDA_MARKER = b"ProgramDerivedAddress"

PROFILE_SEED = b"deres_profile"
PAPER_SEED = b"deres_paper"
REVIEW_SEED = b"deres_review"
MINT_SEED = b"deres_mint"

# ed25519 曲线参数
_P = 2 ** 255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P
_SQRT_M1 = pow(2, (_P - 1) // 4, _P)


class InvalidSeeds(ValueError):
    """种子无法产生合法的派生地址"""


def to_pubkey(value: Union[str, bytes, bytearray]) -> bytes:
    """十六进制字符串或字节转换为32字节公钥"""
    if isinstance(value, str):
        try:
            value = bytes.fromhex(value)
        except ValueError:
            raise ValueError(f"Invalid pubkey: {value!r}") from None
    value = bytes(value)
    if len(value) != PUBKEY_LENGTH:
        raise ValueError(f"Pubkey must be {PUBKEY_LENGTH} bytes, got {len(value)}")
    return value


def is_on_curve(key: bytes) -> bool:
    """判断压缩点是否能解压为 ed25519 曲线上的点"""
    y = (int.from_bytes(key, "little") & ((1 << 255) - 1)) % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P
    if x2 == 0:
        return True
    x = pow(x2, (_P + 3) // 8, _P)
    if (x * x - x2) % _P != 0:
        x = x * _SQRT_M1 % _P
    return (x * x - x2) % _P == 0


def create_program_address(seeds: Sequence[bytes], program_id: bytes) -> bytes:
    if len(seeds) > MAX_SEEDS:
        raise InvalidSeeds(f"At most {MAX_SEEDS} seeds are allowed")
    digest = hashes.Hash(hashes.SHA256())
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise InvalidSeeds(f"Seed longer than {MAX_SEED_LENGTH} bytes")
        digest.update(bytes(seed))
    digest.update(program_id)
    digest.update(PDA_MARKER)
    address = digest.finalize()
    if is_on_curve(address):
        raise InvalidSeeds("Derived address lies on the ed25519 curve")
    return address


def derive(seeds: Sequence[bytes], program_id: bytes) -> Tuple[bytes, int]:
    """从 bump=255 开始向下查找第一个合法地址"""
    for bump in range(255, -1, -1):
        try:
            return create_program_address(list(seeds) + [bytes([bump])], program_id), bump
        except InvalidSeeds:
            continue
    raise InvalidSeeds("Unable to find a viable bump seed")


def validate(seeds: Sequence[bytes], bump: int, claimed: bytes, program_id: bytes) -> None:
    """用种子和 bump 重新计算地址并与调用方提供的地址比较"""
    if not 0 <= bump <= 255:
        raise PdaMismatch(f"bump {bump} out of range")
    try:
        expected = create_program_address(list(seeds) + [bytes([bump])], program_id)
    except InvalidSeeds as e:
        raise PdaMismatch(str(e)) from e
    if expected != bytes(claimed):
        raise PdaMismatch(f"expected {expected.hex()}, got {bytes(claimed).hex()}")


def profile_seeds(owner: bytes) -> List[bytes]:
    return [PROFILE_SEED, owner]


def paper_seeds(content_hash: bytes, creator: bytes) -> List[bytes]:
    # 单个种子最长32字节，内容哈希只取前缀
    return [PAPER_SEED, content_hash[:MAX_SEED_LENGTH], creator]


def review_seeds(paper: bytes, reviewer: bytes) -> List[bytes]:
    return [REVIEW_SEED, paper, reviewer]


def mint_seeds(reader: bytes) -> List[bytes]:
    return [MINT_SEED, reader]
