"""
PEM encoding of EC private keys used as the key cache format.

The cache text is a traditional OpenSSL ``EC PRIVATE KEY`` block.  Loading
also accepts PKCS#8 (``PRIVATE KEY``) so caches written by other tools restore.
"""
from __future__ import annotations

from typing import NamedTuple, Optional

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec


class KeyPair(NamedTuple):
    private_key: ec.EllipticCurvePrivateKey
    public_key: ec.EllipticCurvePublicKey

    @classmethod
    def from_private_key(cls, private_key: ec.EllipticCurvePrivateKey) -> "KeyPair":
        return cls(private_key, private_key.public_key())


class PemService:
    def serialize(self, private_key: ec.EllipticCurvePrivateKey) -> str:
        """Serialize a private key to an unencrypted PEM string."""
        return private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()

    def parse(self, text: str) -> Optional[KeyPair]:
        """
        Load a key pair from PEM text.

        Returns None when the text holds a valid key that is not an EC key.
        Malformed text raises whatever `cryptography` raises (ValueError,
        TypeError or UnsupportedAlgorithm).
        """
        key = serialization.load_pem_private_key(
            text.encode(), password=None, backend=default_backend()
        )
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            return None
        return KeyPair.from_private_key(key)
