"""
Named-curve resolution for EC key generation.

A broken curve setting must never block issuance: anything that does not
resolve falls back to DEFAULT_CURVE.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from cryptography.hazmat.primitives.asymmetric import ec

logger = logging.getLogger(__name__)

DEFAULT_CURVE = "secp384r1"

# SEC 2 prime-field curves implemented by `cryptography`.
_SEC_CURVES: dict[str, type[ec.EllipticCurve]] = {
    "secp192r1": ec.SECP192R1,
    "secp224r1": ec.SECP224R1,
    "secp256k1": ec.SECP256K1,
    "secp256r1": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "secp521r1": ec.SECP521R1,
}

_ALIASES = {
    "prime192v1": "secp192r1",
    "prime256v1": "secp256r1",
    "p-192": "secp192r1",
    "p-224": "secp224r1",
    "p-256": "secp256r1",
    "p-384": "secp384r1",
    "p-521": "secp521r1",
}


@dataclass(frozen=True)
class CurveSpec:
    name: str
    curve: ec.EllipticCurve


def lookup_curve(name: str) -> CurveSpec:
    """
    Return the CurveSpec for a SEC curve name (or a common alias).

    Raises KeyError for names that are not recognised.
    """
    key = name.strip().lower()
    key = _ALIASES.get(key, key)
    return CurveSpec(name=key, curve=_SEC_CURVES[key]())


class CurveSelector:
    """Resolve the configured curve name, substituting the default when invalid."""

    def __init__(self, configured_name: Optional[str] = None) -> None:
        self.configured_name = configured_name

    def resolve(self, configured_name: Optional[str] = None) -> CurveSpec:
        name = configured_name if configured_name is not None else self.configured_name
        spec = lookup_curve(DEFAULT_CURVE)
        if name is not None:
            try:
                spec = lookup_curve(name)
            except KeyError:
                logger.warning("Unknown curve %s", name)
            except Exception as exc:
                logger.warning("Unable to get EC name, error: %s", exc)
        logger.debug("ECCurve: %s", spec.name)
        return spec
