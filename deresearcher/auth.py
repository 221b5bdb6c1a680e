from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
import base64
from typing import Optional


class Keypair:
    """Ed25519 密钥对，公钥的32字节原始编码即账户地址"""

    def __init__(self, private_key: Optional[Ed25519PrivateKey] = None):
        self._private_key = private_key or Ed25519PrivateKey.generate()
        self._public_key = self._private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw
        )

    @classmethod
    def from_secret(cls, secret: bytes) -> "Keypair":
        return cls(Ed25519PrivateKey.from_private_bytes(secret))

    @classmethod
    def from_base64(cls, encoded: str) -> "Keypair":
        return cls.from_secret(base64.b64decode(encoded))

    @property
    def public_key(self) -> bytes:
        return self._public_key

    @property
    def secret(self) -> bytes:
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption()
        )

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message)

    def __repr__(self) -> str:
        return f"Keypair({self.public_key.hex()})"


def generate_key_pair() -> dict:
    """生成 Ed25519 密钥对"""
    keypair = Keypair()
    return {
        'private_key': base64.b64encode(keypair.secret).decode('utf-8'),
        'public_key': keypair.public_key.hex()
    }


def sign_message(private_key: str, message: bytes) -> str:
    """使用私钥签名消息"""
    keypair = Keypair.from_base64(private_key)
    return base64.b64encode(keypair.sign(message)).decode('utf-8')


def verify_signature(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """验证签名"""
    try:
        Ed25519PublicKey.from_public_bytes(public_key).verify(signature, message)
        return True
    except (InvalidSignature, ValueError):
        return False
