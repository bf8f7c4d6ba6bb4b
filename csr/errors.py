"""
Exceptions raised by the CSR key core.

Cache corruption and curve misconfiguration are absorbed where they happen
(logged, then recovered), so they have no exception type here.
"""
from __future__ import annotations


class CsrError(Exception):
    """Base class for fatal failures while preparing a CSR."""


class KeyGenerationError(CsrError):
    """Raised when the crypto library cannot produce a new key pair."""

    def __init__(self, curve_name: str, cause: BaseException) -> None:
        self.curve_name = curve_name
        self.cause = cause
        super().__init__(f"EC key generation failed on {curve_name}: {cause}")


class HandleImportError(CsrError):
    """Raised when the re-encoded private key cannot be imported for signing."""


class HandleDisposedError(CsrError):
    """Raised when a signing handle is used after it has been released."""


class KeyMismatchError(CsrError):
    """Raised when a supplied signing handle does not hold the provider's key."""
