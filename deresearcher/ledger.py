"""内存账本宿主

为程序提供按地址存储的字节数据、租金计算、账户创建、转账、签名校验，
以及整笔交易要么全部生效、要么全部回滚的原子性。
"""

import copy
import logging
import struct
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from cryptography.hazmat.primitives import hashes

from .addressing import InvalidSeeds, create_program_address
from .auth import Keypair, verify_signature
from .errors import LedgerError

logger = logging.getLogger(__name__)

SYSTEM_PROGRAM_ID = bytes(32)

# 租金豁免参数
ACCOUNT_STORAGE_OVERHEAD = 128
LAMPORTS_PER_BYTE_YEAR = 3480
EXEMPTION_THRESHOLD = 2

# 最近区块哈希的有效窗口，超出后引用它的交易视为过期
MAX_RECENT_BLOCKHASHES = 150


def minimum_balance(size: int) -> int:
    """计算新账户免租所需的最低余额"""
    return (ACCOUNT_STORAGE_OVERHEAD + size) * LAMPORTS_PER_BYTE_YEAR * EXEMPTION_THRESHOLD


@dataclass
class Account:
    lamports: int = 0
    data: bytearray = field(default_factory=bytearray)
    owner: bytes = SYSTEM_PROGRAM_ID


@dataclass
class AccountMeta:
    pubkey: bytes
    is_signer: bool = False
    is_writable: bool = False


@dataclass
class Instruction:
    program_id: bytes
    accounts: List[AccountMeta]
    data: bytes


class AccountInfo:
    """传给程序的账户视图，读写直接作用于本次交易的工作副本"""

    def __init__(self, key: bytes, account: Account, is_signer: bool, is_writable: bool):
        self.key = key
        self.account = account
        self.is_signer = is_signer
        self.is_writable = is_writable

    @property
    def lamports(self) -> int:
        return self.account.lamports

    @property
    def data(self) -> bytearray:
        return self.account.data

    @property
    def owner(self) -> bytes:
        return self.account.owner

    def data_is_empty(self) -> bool:
        return len(self.account.data) == 0

    def __repr__(self) -> str:
        return (
            f"AccountInfo({self.key.hex()}, signer={self.is_signer}, "
            f"writable={self.is_writable}, lamports={self.lamports})"
        )


class Transaction:
    def __init__(
        self,
        instructions: Sequence[Instruction],
        recent_blockhash: bytes,
        signatures: Optional[Dict[bytes, bytes]] = None,
    ):
        self.instructions = list(instructions)
        self.recent_blockhash = bytes(recent_blockhash)
        self.signatures: Dict[bytes, bytes] = dict(signatures or {})

    def message(self) -> bytes:
        """签名覆盖的消息：最近区块哈希，以及所有指令的程序、账户列表及数据"""
        parts = [self.recent_blockhash, struct.pack("<B", len(self.instructions))]
        for ix in self.instructions:
            parts.append(ix.program_id)
            parts.append(struct.pack("<B", len(ix.accounts)))
            for meta in ix.accounts:
                flags = (1 if meta.is_signer else 0) | (2 if meta.is_writable else 0)
                parts.append(meta.pubkey + struct.pack("<B", flags))
            parts.append(struct.pack("<I", len(ix.data)) + ix.data)
        return b"".join(parts)

    def required_signers(self) -> List[bytes]:
        signers: List[bytes] = []
        for ix in self.instructions:
            for meta in ix.accounts:
                if meta.is_signer and meta.pubkey not in signers:
                    signers.append(meta.pubkey)
        return signers

    def sign(self, *keypairs: Keypair) -> "Transaction":
        message = self.message()
        for keypair in keypairs:
            self.signatures[keypair.public_key] = keypair.sign(message)
        return self

    def signature(self) -> Optional[bytes]:
        """交易标识：第一个签名者的签名，无签名者时为 None"""
        signers = self.required_signers()
        if not signers:
            return None
        return self.signatures.get(signers[0])


class InvokeContext:
    """程序执行期间可调用的宿主原语"""

    def __init__(self, program_id: bytes):
        self.program_id = program_id

    def minimum_balance(self, size: int) -> int:
        return minimum_balance(size)

    def create_account(
        self,
        payer: AccountInfo,
        new_account: AccountInfo,
        space: int,
        owner: bytes,
        signer_seeds: Optional[Sequence[bytes]] = None,
    ) -> None:
        if not payer.is_signer or not payer.is_writable:
            raise LedgerError(f"payer {payer.key.hex()} must be a writable signer")
        if not new_account.is_writable:
            raise LedgerError(f"new account {new_account.key.hex()} must be writable")
        if not new_account.is_signer:
            # 派生地址由程序用种子代为签名
            try:
                derived = create_program_address(signer_seeds or [], self.program_id)
            except InvalidSeeds as e:
                raise LedgerError(f"invalid signer seeds: {e}") from e
            if derived != new_account.key:
                raise LedgerError(f"missing signature for new account {new_account.key.hex()}")
        if new_account.lamports or new_account.data or new_account.owner != SYSTEM_PROGRAM_ID:
            raise LedgerError(f"account {new_account.key.hex()} already in use")
        rent = self.minimum_balance(space)
        if payer.lamports < rent:
            raise LedgerError(
                f"insufficient funds: {payer.lamports} lamports, rent needs {rent}"
            )
        payer.account.lamports -= rent
        new_account.account.lamports += rent
        new_account.account.data = bytearray(space)
        new_account.account.owner = owner

    def transfer(self, source: AccountInfo, destination: AccountInfo, amount: int) -> None:
        if not source.is_signer:
            raise LedgerError(f"transfer source {source.key.hex()} must sign")
        if not source.is_writable or not destination.is_writable:
            raise LedgerError("transfer accounts must be writable")
        if source.owner != SYSTEM_PROGRAM_ID or source.data:
            raise LedgerError("transfer source must not carry data")
        if source.lamports < amount:
            raise LedgerError(
                f"insufficient funds: {source.lamports} lamports, transfer needs {amount}"
            )
        source.account.lamports -= amount
        destination.account.lamports += amount


Entrypoint = Callable[[bytes, List[AccountInfo], bytes, InvokeContext], object]


def _next_blockhash(previous: bytes, slot: int) -> bytes:
    digest = hashes.Hash(hashes.SHA256())
    digest.update(previous)
    digest.update(struct.pack("<Q", slot))
    return digest.finalize()


GENESIS_BLOCKHASH = _next_blockhash(b"deresearcher-genesis", 0)


class Ledger:
    def __init__(self):
        self.accounts: Dict[bytes, Account] = {}
        self._programs: Dict[bytes, Entrypoint] = {}
        self._lock = threading.RLock()
        self._slot = 0
        # 区块哈希 -> 引用它且已提交的交易签名
        self._recent: "OrderedDict[bytes, set]" = OrderedDict()
        self._recent[GENESIS_BLOCKHASH] = set()

    def latest_blockhash(self) -> bytes:
        with self._lock:
            return next(reversed(self._recent))

    def _advance_slot(self) -> None:
        self._slot += 1
        self._recent[_next_blockhash(self.latest_blockhash(), self._slot)] = set()
        while len(self._recent) > MAX_RECENT_BLOCKHASHES:
            self._recent.popitem(last=False)

    def register_program(self, program_id: bytes, entrypoint: Entrypoint) -> None:
        self._programs[program_id] = entrypoint

    def get_account(self, pubkey: bytes) -> Optional[Account]:
        return self.accounts.get(pubkey)

    def get_balance(self, pubkey: bytes) -> int:
        account = self.accounts.get(pubkey)
        return account.lamports if account else 0

    def get_data(self, pubkey: bytes) -> bytes:
        account = self.accounts.get(pubkey)
        return bytes(account.data) if account else b""

    def airdrop(self, pubkey: bytes, lamports: int) -> int:
        """开发环境下直接为账户充值"""
        with self._lock:
            account = self.accounts.setdefault(pubkey, Account())
            account.lamports += lamports
            return account.lamports

    def _verify_signatures(self, tx: Transaction) -> None:
        message = tx.message()
        for signer in tx.required_signers():
            signature = tx.signatures.get(signer)
            if signature is None or not verify_signature(signer, message, signature):
                raise LedgerError(f"missing required signature for {signer.hex()}")

    def _resolve(self, ix: Instruction, working: Dict[bytes, Account]) -> List[AccountInfo]:
        # 同一账户多次出现时合并权限
        signer = {}
        writable = {}
        for meta in ix.accounts:
            signer[meta.pubkey] = signer.get(meta.pubkey, False) or meta.is_signer
            writable[meta.pubkey] = writable.get(meta.pubkey, False) or meta.is_writable
        infos = []
        for meta in ix.accounts:
            if meta.pubkey not in working:
                stored = self.accounts.get(meta.pubkey)
                working[meta.pubkey] = copy.deepcopy(stored) if stored else Account()
            infos.append(
                AccountInfo(meta.pubkey, working[meta.pubkey], signer[meta.pubkey], writable[meta.pubkey])
            )
        return infos

    @staticmethod
    def _check_read_only(infos: Iterable[AccountInfo], before: Dict[bytes, Account]) -> None:
        for info in infos:
            if info.is_writable:
                continue
            if info.account != before[info.key]:
                raise LedgerError(f"read-only account {info.key.hex()} was modified")

    def _check_replay(self, tx: Transaction) -> None:
        processed = self._recent.get(tx.recent_blockhash)
        if processed is None:
            raise LedgerError(f"blockhash not found: {tx.recent_blockhash.hex()}")
        if tx.signature() in processed:
            raise LedgerError("transaction already processed")

    def process_transaction(self, tx: Transaction) -> List[object]:
        """执行交易，任意一步失败都不会留下任何修改

        交易必须引用最近的区块哈希，同一签名只会被执行一次。
        """
        with self._lock:
            self._check_replay(tx)
            self._verify_signatures(tx)
            results = self._execute(tx)
            signature = tx.signature()
            if signature is not None:
                self._recent[tx.recent_blockhash].add(signature)
            self._advance_slot()
            return results

    def _execute(self, tx: Transaction) -> List[object]:
        working: Dict[bytes, Account] = {}
        results = []
        try:
            for ix in tx.instructions:
                entrypoint = self._programs.get(ix.program_id)
                if entrypoint is None:
                    raise LedgerError(f"unknown program {ix.program_id.hex()}")
                infos = self._resolve(ix, working)
                before = {info.key: copy.deepcopy(info.account) for info in infos}
                results.append(entrypoint(ix.program_id, infos, ix.data, InvokeContext(ix.program_id)))
                self._check_read_only(infos, before)
        except Exception as e:
            logger.warning("Transaction rolled back: %s", e)
            raise
        self.accounts.update(working)
        logger.info("Transaction committed (%d instruction(s))", len(tx.instructions))
        return results
