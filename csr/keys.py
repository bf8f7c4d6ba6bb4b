"""
Generate-or-restore ownership of the EC key pair behind a CSR.

A provider restores its key from cached PEM text when it can, and generates
(and serializes) a new one when there is no cache or the cache is unreadable.
Once resolved, the key pair is memoised for the life of the provider, so
callers that pin the key see the same key on every call.
"""
from __future__ import annotations

import logging
from typing import Optional

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives.asymmetric import ec

from csr.curves import CurveSelector, CurveSpec
from csr.errors import KeyGenerationError
from csr.pem import KeyPair, PemService

logger = logging.getLogger(__name__)


def generate_ec_key(curve: CurveSpec) -> ec.EllipticCurvePrivateKey:
    """Generate an EC private key on *curve* using the OS random source."""
    return ec.generate_private_key(curve.curve, default_backend())


class KeyPairProvider:
    def __init__(
        self,
        pem_service: PemService,
        curve_selector: CurveSelector,
        cache_data: Optional[str] = None,
    ) -> None:
        self._pem = pem_service
        self._curves = curve_selector
        self._cache_data = cache_data
        self._key_pair: Optional[KeyPair] = None

    @property
    def cache_data(self) -> Optional[str]:
        """PEM text the caller should persist to restore this key later."""
        return self._cache_data

    @property
    def key_pair(self) -> Optional[KeyPair]:
        return self._key_pair

    def get_private_key(
        self, cache_data: Optional[str] = None
    ) -> tuple[ec.EllipticCurvePrivateKey, str]:
        """
        Return ``(private_key, cache_data)``.

        *cache_data* only matters before the first resolution; afterwards the
        memoised key and its cache text are returned as-is.
        """
        if self._key_pair is None:
            if cache_data is not None:
                self._cache_data = cache_data
            self._key_pair = self._resolve()
        return self._key_pair.private_key, self._cache_data

    def _resolve(self) -> KeyPair:
        # TryRestore -> Generate; the fallback edge is taken at most once.
        if self._cache_data is not None:
            restored = self._try_restore(self._cache_data)
            if restored is not None:
                return restored
            logger.error("Unable to read cache data, creating new key...")
            self._cache_data = None

        key_pair = self._generate()
        self._cache_data = self._pem.serialize(key_pair.private_key)
        return key_pair

    def _try_restore(self, text: str) -> Optional[KeyPair]:
        try:
            return self._pem.parse(text)
        except Exception as exc:
            logger.debug("Cache parse failed: %s", exc)
            return None

    def _generate(self) -> KeyPair:
        curve = self._curves.resolve()
        try:
            private_key = generate_ec_key(curve)
        except Exception as exc:
            raise KeyGenerationError(curve.name, exc) from exc
        logger.info("Generated new %s key", curve.name)
        return KeyPair.from_private_key(private_key)
