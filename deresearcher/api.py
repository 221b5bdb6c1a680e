import base64
import binascii
import logging
from typing import Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import codec, sdk
from .addressing import to_pubkey
from .auth import generate_key_pair, sign_message
from .config import get_settings
from .errors import DeResearcherError, LedgerError, PaperNotFound, ProfileNotFound
from .ledger import AccountMeta, Instruction, Ledger, Transaction
from .models import AccessMintRecord, PeerReview, ResearcherProfile, ResearchPaper
from .processor import Processor

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="DeResearcher Ledger API")

# 添加CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 初始化账本并注册程序
ledger = Ledger()
ledger.register_program(settings.program_id, Processor(settings))


# 请求模型
class AccountMetaIn(BaseModel):
    pubkey: str
    is_signer: bool = False
    is_writable: bool = False


class InstructionIn(BaseModel):
    program_id: Optional[str] = None
    accounts: List[AccountMetaIn]
    data: str


class TransactionIn(BaseModel):
    recent_blockhash: str
    instructions: List[InstructionIn]
    signatures: Dict[str, str] = {}


class AirdropRequest(BaseModel):
    lamports: int = Field(gt=0)


class SignMessageRequest(BaseModel):
    private_key: str
    message: str  # 十六进制


def _pubkey(value: str) -> bytes:
    try:
        return to_pubkey(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _build_transaction(body: TransactionIn, with_signatures: bool = True) -> Transaction:
    try:
        instructions = [
            Instruction(
                program_id=_pubkey(ix.program_id) if ix.program_id else settings.program_id,
                accounts=[
                    AccountMeta(_pubkey(meta.pubkey), meta.is_signer, meta.is_writable)
                    for meta in ix.accounts
                ],
                data=bytes.fromhex(ix.data),
            )
            for ix in body.instructions
        ]
        recent_blockhash = bytes.fromhex(body.recent_blockhash)
        signatures = {}
        if with_signatures:
            signatures = {
                _pubkey(key): base64.b64decode(sig, validate=True)
                for key, sig in body.signatures.items()
            }
    except (ValueError, binascii.Error) as e:
        raise HTTPException(status_code=400, detail=f"Malformed transaction: {e}")
    return Transaction(instructions, recent_blockhash, signatures)


def _load(model, address: str, missing):
    data = ledger.get_data(_pubkey(address))
    if not data:
        raise missing(f"no record at {address}")
    return codec.decode(model, data)


# 错误处理
@app.exception_handler(DeResearcherError)
async def program_error_handler(request: Request, exc: DeResearcherError):
    logger.error("%s: %s", exc.code.name, exc, extra={"path": request.url.path})
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.error("LedgerError: %s", exc.reason, extra={"path": request.url.path})
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


# 配置接口
@app.get("/config")
async def get_config():
    return {
        "program_id": settings.program_id.hex(),
        "reputation_authority": settings.reputation_authority.hex(),
        "min_approvals_for_publish": settings.min_approvals_for_publish,
        "require_published_for_access": settings.require_published_for_access,
    }


# 账户相关接口
@app.post("/accounts/{pubkey}/airdrop")
def airdrop(pubkey: str, request: AirdropRequest):
    """开发环境充值"""
    return {"lamports": ledger.airdrop(_pubkey(pubkey), request.lamports)}


@app.get("/accounts/{pubkey}")
async def get_account(pubkey: str):
    account = ledger.get_account(_pubkey(pubkey))
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return {
        "pubkey": pubkey,
        "lamports": account.lamports,
        "owner": account.owner.hex(),
        "data_len": len(account.data),
    }


# 交易相关接口
@app.post("/transactions/message")
async def transaction_message(body: TransactionIn):
    """返回待签名的消息"""
    tx = _build_transaction(body, with_signatures=False)
    return {"message": tx.message().hex(), "signers": [key.hex() for key in tx.required_signers()]}


@app.get("/blockhash")
async def get_blockhash():
    """交易需要引用的最近区块哈希"""
    return {"blockhash": ledger.latest_blockhash().hex()}


# 在线程池中执行，账本内部加锁
@app.post("/transactions")
def submit_transaction(body: TransactionIn):
    tx = _build_transaction(body)
    ledger.process_transaction(tx)
    return {"status": "success"}


# 记录查询接口
@app.get("/profiles/by-owner/{owner}", response_model=ResearcherProfile)
async def get_profile_by_owner(owner: str):
    address, _ = sdk.find_profile_address(_pubkey(owner), settings.program_id)
    return _load(ResearcherProfile, address.hex(), ProfileNotFound)


@app.get("/profiles/{address}", response_model=ResearcherProfile)
async def get_profile(address: str):
    return _load(ResearcherProfile, address, ProfileNotFound)


@app.get("/papers/{address}", response_model=ResearchPaper)
async def get_paper(address: str):
    return _load(ResearchPaper, address, PaperNotFound)


@app.get("/reviews/{address}", response_model=PeerReview)
async def get_review(address: str):
    data = ledger.get_data(_pubkey(address))
    if not data:
        raise HTTPException(status_code=404, detail="Review not found")
    return codec.decode(PeerReview, data)


@app.get("/mints/{address}", response_model=AccessMintRecord)
async def get_mint(address: str):
    data = ledger.get_data(_pubkey(address))
    if not data:
        raise HTTPException(status_code=404, detail="Mint record not found")
    return codec.decode(AccessMintRecord, data)


# 工具接口
@app.post("/auth/generate-keys")
async def generate_keys():
    return generate_key_pair()


@app.post("/auth/sign")
async def sign(request: SignMessageRequest):
    """使用私钥签名消息"""
    try:
        signature = sign_message(request.private_key, bytes.fromhex(request.message))
    except (ValueError, binascii.Error) as e:
        logger.warning("Error in sign_message: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    return {"signature": signature}


# 请求日志中间件
@app.middleware("http")
async def log_requests(request, call_next):
    response = await call_next(request)
    logger.info("%s %s -> %d", request.method, request.url.path, response.status_code)
    return response


if __name__ == "__main__":
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
