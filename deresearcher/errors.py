"""错误定义

每个程序错误都有唯一的数字错误码，调用方根据错误码决定是否重新提交。
账本宿主自身的失败（余额不足、缺少签名等）使用 LedgerError 单独表示。
"""

from enum import IntEnum
from typing import Dict, Optional, Type


class ErrorCode(IntEnum):
    INVALID_INSTRUCTION = 0
    INVALID_SIGNER = 1
    PAPER_ALREADY_EXISTS = 2
    PUBKEY_MISMATCH = 3
    INVALID_STATE = 4
    NOT_ENOUGH_APPROVALS = 5
    PEER_REVIEW_ALREADY_EXISTS = 6
    INVALID_FEE_RECEIVER = 7
    PROFILE_ALREADY_EXISTS = 8
    PROFILE_NOT_FOUND = 9
    NOT_ALLOWED_FOR_PEER_REVIEW = 10
    PAPER_NOT_FOUND = 11
    SERIALIZATION_ERROR = 12
    SIZE_OVERFLOW = 13
    IMMUTABLE_ACCOUNT = 14
    PDA_MISMATCH = 15
    PUBLISHER_CANNOT_ADD_PEER_REVIEW = 16
    INVALID_REPUTATION_CHECKER = 17


class DeResearcherError(Exception):
    """程序错误基类"""

    code: ErrorCode = ErrorCode.INVALID_INSTRUCTION
    message = "Program error"
    http_status = 400

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.message)
        self.detail = detail

    def to_response(self) -> dict:
        return {
            "error": {
                "code": int(self.code),
                "name": self.code.name,
                "message": self.message,
                "detail": self.detail,
            }
        }


class InvalidInstruction(DeResearcherError):
    code = ErrorCode.INVALID_INSTRUCTION
    message = "Invalid Instruction (this ix is not supported)"


class InvalidSigner(DeResearcherError):
    code = ErrorCode.INVALID_SIGNER
    message = "Invalid Signer"
    http_status = 403


class PaperAlreadyExists(DeResearcherError):
    code = ErrorCode.PAPER_ALREADY_EXISTS
    message = "Paper already exists"
    http_status = 409


class PubkeyMismatch(DeResearcherError):
    code = ErrorCode.PUBKEY_MISMATCH
    message = "Pubkey mismatch"


class InvalidState(DeResearcherError):
    code = ErrorCode.INVALID_STATE
    message = "Invalid state"
    http_status = 409


class NotEnoughApprovals(DeResearcherError):
    code = ErrorCode.NOT_ENOUGH_APPROVALS
    message = "Not enough approvals"
    http_status = 409


class PeerReviewAlreadyExists(DeResearcherError):
    code = ErrorCode.PEER_REVIEW_ALREADY_EXISTS
    message = "Peer Review already exists"
    http_status = 409


class InvalidFeeReceiver(DeResearcherError):
    code = ErrorCode.INVALID_FEE_RECEIVER
    message = "Invalid Fee Receiver"


class ProfileAlreadyExists(DeResearcherError):
    code = ErrorCode.PROFILE_ALREADY_EXISTS
    message = "Profile already exists"
    http_status = 409


class ProfileNotFound(DeResearcherError):
    code = ErrorCode.PROFILE_NOT_FOUND
    message = "Profile not found"
    http_status = 404


class NotAllowedForPeerReview(DeResearcherError):
    code = ErrorCode.NOT_ALLOWED_FOR_PEER_REVIEW
    message = "Not allowed for peer review"
    http_status = 403


class PaperNotFound(DeResearcherError):
    code = ErrorCode.PAPER_NOT_FOUND
    message = "Paper not found"
    http_status = 404


class SerializationError(DeResearcherError):
    code = ErrorCode.SERIALIZATION_ERROR
    message = "serialization error"
    http_status = 500


class SizeOverflow(DeResearcherError):
    code = ErrorCode.SIZE_OVERFLOW
    message = "Size overflow"


class ImmutableAccount(DeResearcherError):
    code = ErrorCode.IMMUTABLE_ACCOUNT
    message = "Account is Immutable"


class PdaMismatch(DeResearcherError):
    code = ErrorCode.PDA_MISMATCH
    message = "PDA pubkey mismatch"


class PublisherCannotAddPeerReview(DeResearcherError):
    code = ErrorCode.PUBLISHER_CANNOT_ADD_PEER_REVIEW
    message = "Publisher cannot add a peer review to their own paper"
    http_status = 403


class InvalidReputationChecker(DeResearcherError):
    code = ErrorCode.INVALID_REPUTATION_CHECKER
    message = "Invalid Reputation checker"
    http_status = 403


ERRORS_BY_CODE: Dict[ErrorCode, Type[DeResearcherError]] = {
    cls.code: cls for cls in DeResearcherError.__subclasses__()
}


def error_from_code(code: int, detail: Optional[str] = None) -> DeResearcherError:
    """根据错误码还原异常对象"""
    try:
        cls = ERRORS_BY_CODE[ErrorCode(code)]
    except ValueError:
        raise ValueError(f"Unknown error code: {code}") from None
    return cls(detail)


class LedgerError(Exception):
    """账本宿主拒绝执行（余额不足、签名缺失、账户已被占用等）"""

    http_status = 400

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

    def to_response(self) -> dict:
        return {"error": {"code": "LEDGER_ERROR", "message": self.reason}}
