"""
Signing handle around the CSR private key, built once and released once.

The handle holds its own copy of the key, imported from a PKCS#8 DER
re-encoding of the provider's key, so its lifetime is independent of the
provider's in-memory key pair.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from csr.errors import HandleDisposedError, HandleImportError

logger = logging.getLogger(__name__)


class SigningHandle:
    """ECDSA signer bound to one imported private key."""

    def __init__(self, private_key: ec.EllipticCurvePrivateKey) -> None:
        self._key: Optional[ec.EllipticCurvePrivateKey] = private_key

    @classmethod
    def import_key(cls, private_key: ec.EllipticCurvePrivateKey) -> "SigningHandle":
        """Re-encode *private_key* as PKCS#8 DER and import it into a new handle."""
        try:
            blob = private_key.private_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
            imported = serialization.load_der_private_key(
                blob, password=None, backend=default_backend()
            )
        except Exception as exc:
            raise HandleImportError(f"Unable to import private key: {exc}") from exc
        if not isinstance(imported, ec.EllipticCurvePrivateKey):
            raise HandleImportError(
                f"Imported key is {type(imported).__name__}, expected an EC key"
            )
        return cls(imported)

    @property
    def closed(self) -> bool:
        return self._key is None

    @property
    def key(self) -> ec.EllipticCurvePrivateKey:
        if self._key is None:
            raise HandleDisposedError("Signing handle has been released")
        return self._key

    @property
    def curve_name(self) -> str:
        return self.key.curve.name

    def public_key(self) -> ec.EllipticCurvePublicKey:
        return self.key.public_key()

    def sign(self, data: bytes) -> bytes:
        """Return a DER-encoded ECDSA/SHA-256 signature over *data*."""
        return self.key.sign(data, ec.ECDSA(hashes.SHA256()))

    def close(self) -> None:
        self._key = None


class KeyHandleLifecycle:
    """
    Owns the lazily built SigningHandle for one CSR plugin.

    ``release()`` is idempotent and terminal: after it, ``handle`` raises
    HandleDisposedError instead of building a new handle.
    """

    def __init__(self, key_source: Callable[[], ec.EllipticCurvePrivateKey]) -> None:
        self._key_source = key_source
        self._handle: Optional[SigningHandle] = None
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def created(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> SigningHandle:
        if self._disposed:
            raise HandleDisposedError("Key handle lifecycle has been released")
        if self._handle is None:
            self._handle = SigningHandle.import_key(self._key_source())
            logger.debug("Signing handle created (%s)", self._handle.curve_name)
        return self._handle

    def release(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._handle is not None:
            self._handle.close()
            logger.debug("Signing handle released")

    def __enter__(self) -> "KeyHandleLifecycle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
