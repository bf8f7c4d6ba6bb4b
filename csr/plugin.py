"""
EC CSR plugin: binds the provider's key pair to a subject name.

Boundary: this module produces an unsigned CsrRequest.  Protocol code that
submits the CSR calls ``CsrRequest.sign()`` / ``to_der()`` when it needs the
encoded request.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from csr.curves import CurveSelector
from csr.errors import KeyMismatchError
from csr.handle import KeyHandleLifecycle, SigningHandle
from csr.keys import KeyPairProvider
from csr.pem import PemService


def common_name(domain: str) -> x509.Name:
    """Return a subject Name holding only a CN of *domain*."""
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domain)])


@dataclass(frozen=True)
class CsrRequest:
    subject_name: x509.Name
    public_key: ec.EllipticCurvePublicKey
    hash_algorithm: hashes.HashAlgorithm
    signer: SigningHandle = field(repr=False, compare=False)

    def public_key_bytes(self) -> bytes:
        """DER SubjectPublicKeyInfo of the bound key."""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    def sign(self, san_domains: Optional[list[str]] = None) -> x509.CertificateSigningRequest:
        """
        Self-sign the request with the bound handle.

        If *san_domains* is given, they are added (deduplicated, order kept)
        as a non-critical SubjectAlternativeName extension.  Raises
        HandleDisposedError once the handle has been released.
        """
        builder = x509.CertificateSigningRequestBuilder().subject_name(self.subject_name)
        if san_domains:
            names = list(dict.fromkeys(san_domains))
            builder = builder.add_extension(
                x509.SubjectAlternativeName([x509.DNSName(d) for d in names]),
                critical=False,
            )
        return builder.sign(self.signer.key, self.hash_algorithm)

    def to_der(self, san_domains: Optional[list[str]] = None) -> bytes:
        return self.sign(san_domains).public_bytes(serialization.Encoding.DER)

    def to_pem(self, san_domains: Optional[list[str]] = None) -> str:
        return self.sign(san_domains).public_bytes(serialization.Encoding.PEM).decode()


class CsrPlugin(Protocol):
    """What issuance code needs from a key-algorithm family."""

    def generate_csr(self, subject_name: x509.Name) -> CsrRequest: ...

    def get_private_key(self) -> object: ...


class EcCsrPlugin:
    """
    Elliptic-curve CSR plugin.

    Use as a context manager (or call ``close()``) so the signing handle is
    released on every exit path::

        with EcCsrPlugin(curve_name=settings.EC_CURVE, cache_data=cached) as plugin:
            request = plugin.generate_csr(common_name("example.com"))
            csr_der = request.to_der(["example.com"])
            new_cache = plugin.cache_data
    """

    def __init__(
        self,
        curve_name: Optional[str] = None,
        cache_data: Optional[str] = None,
        pem_service: Optional[PemService] = None,
    ) -> None:
        self._provider = KeyPairProvider(
            pem_service or PemService(),
            CurveSelector(curve_name),
            cache_data=cache_data,
        )
        self._lifecycle = KeyHandleLifecycle(self.get_private_key)

    @property
    def cache_data(self) -> Optional[str]:
        return self._provider.cache_data

    @property
    def algorithm(self) -> SigningHandle:
        return self._lifecycle.handle

    @property
    def closed(self) -> bool:
        return self._lifecycle.disposed

    def get_private_key(self) -> ec.EllipticCurvePrivateKey:
        private_key, _ = self._provider.get_private_key()
        return private_key

    def generate_csr(
        self,
        subject_name: x509.Name,
        algorithm_provider: Optional[SigningHandle] = None,
    ) -> CsrRequest:
        """
        Bind *subject_name* to the provider's key.

        *algorithm_provider* may replace the plugin's own handle, but must hold
        the same key; otherwise KeyMismatchError is raised.
        """
        if algorithm_provider is None:
            handle = self.algorithm
        else:
            handle = algorithm_provider
            expected = self.get_private_key().public_key().public_numbers()
            if handle.public_key().public_numbers() != expected:
                raise KeyMismatchError("Signing handle does not hold this plugin's key")
        return CsrRequest(
            subject_name=subject_name,
            public_key=handle.public_key(),
            hash_algorithm=hashes.SHA256(),
            signer=handle,
        )

    def close(self) -> None:
        self._lifecycle.release()

    def __enter__(self) -> "EcCsrPlugin":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
