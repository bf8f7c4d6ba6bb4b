"""
Tests for the EC CSR plugin: CSR binding, cache round-trips and teardown.
"""
from __future__ import annotations

from unittest.mock import patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization

from csr.errors import HandleDisposedError, HandleImportError, KeyMismatchError
from csr.handle import SigningHandle
from csr.keys import generate_ec_key
from csr.plugin import CsrPlugin, CsrRequest, EcCsrPlugin, common_name


def _spki(public_key) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture()
def plugin():
    with EcCsrPlugin(curve_name="secp256r1") as p:
        yield p


# ─── generate_csr ─────────────────────────────────────────────────────────────

def test_csr_binds_subject_and_key(plugin):
    subject = common_name("example.com")
    request = plugin.generate_csr(subject)

    assert isinstance(request, CsrRequest)
    assert request.subject_name == subject
    assert isinstance(request.hash_algorithm, hashes.SHA256)
    assert request.public_key_bytes() == _spki(plugin.get_private_key().public_key())


def test_generate_csr_builds_handle_once(plugin):
    with patch.object(SigningHandle, "import_key", wraps=SigningHandle.import_key) as imp:
        plugin.generate_csr(common_name("a.example.com"))
        plugin.generate_csr(common_name("b.example.com"))
    assert imp.call_count == 1


def test_explicit_algorithm_provider_is_used(plugin):
    own = SigningHandle.import_key(plugin.get_private_key())
    request = plugin.generate_csr(common_name("example.com"), algorithm_provider=own)

    assert request.signer is own
    assert request.public_key_bytes() == _spki(plugin.get_private_key().public_key())


def test_foreign_algorithm_provider_is_rejected(plugin, p256_key):
    foreign = SigningHandle.import_key(p256_key)
    with pytest.raises(KeyMismatchError):
        plugin.generate_csr(common_name("example.com"), algorithm_provider=foreign)


def test_signed_csr_is_valid(plugin):
    request = plugin.generate_csr(common_name("example.com"))
    csr = request.sign()

    assert csr.is_signature_valid
    assert csr.subject == common_name("example.com")
    assert isinstance(csr.signature_hash_algorithm, hashes.SHA256)
    assert _spki(csr.public_key()) == request.public_key_bytes()


def test_signed_csr_san_is_deduplicated(plugin):
    request = plugin.generate_csr(common_name("example.com"))
    csr_der = request.to_der(["example.com", "www.example.com", "example.com"])

    csr = x509.load_der_x509_csr(csr_der)
    san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    assert [d.value for d in san.value] == ["example.com", "www.example.com"]
    assert not san.critical


def test_to_pem(plugin):
    pem = plugin.generate_csr(common_name("example.com")).to_pem()
    assert pem.startswith("-----BEGIN CERTIFICATE REQUEST-----")


def test_default_curve_plugin():
    with EcCsrPlugin(curve_name="not-a-curve") as p:
        assert p.get_private_key().curve.name == "secp384r1"


def test_plugin_satisfies_protocol(plugin):
    def issue(p: CsrPlugin) -> CsrRequest:
        p.get_private_key()
        return p.generate_csr(common_name("example.com"))

    assert issue(plugin).subject_name == common_name("example.com")


# ─── Cache round-trip ─────────────────────────────────────────────────────────

def test_restored_plugin_produces_same_public_key():
    with EcCsrPlugin(curve_name="secp256r1") as first:
        original = first.generate_csr(common_name("example.com")).public_key_bytes()
        cache = first.cache_data

    with patch("csr.keys.generate_ec_key", wraps=generate_ec_key) as gen:
        with EcCsrPlugin(curve_name="secp256r1", cache_data=cache) as second:
            restored = second.generate_csr(common_name("example.com"))
            assert second.cache_data is cache

    gen.assert_not_called()
    assert restored.public_key_bytes() == original


def test_corrupted_cache_yields_new_key(corrupt_cache, caplog):
    with EcCsrPlugin(curve_name="secp256r1", cache_data=corrupt_cache) as p:
        request = p.generate_csr(common_name("example.com"))
        assert p.cache_data not in (None, corrupt_cache)
        assert request.sign().is_signature_valid
    assert "Unable to read cache data" in caplog.text


# ─── Teardown ─────────────────────────────────────────────────────────────────

def test_close_twice_then_sign_fails_cleanly():
    p = EcCsrPlugin(curve_name="secp256r1")
    request = p.generate_csr(common_name("example.com"))

    p.close()
    p.close()

    assert p.closed
    with pytest.raises(HandleDisposedError):
        request.sign()
    with pytest.raises(HandleDisposedError):
        p.generate_csr(common_name("example.com"))


def test_close_without_csr_is_noop():
    p = EcCsrPlugin(curve_name="secp256r1")
    with patch("csr.keys.generate_ec_key") as gen:
        p.close()
    gen.assert_not_called()
    assert p.closed


def test_handle_import_failure_surfaces():
    with patch.object(
        SigningHandle, "import_key", side_effect=HandleImportError("import rejected")
    ):
        with EcCsrPlugin(curve_name="secp256r1") as p:
            with pytest.raises(HandleImportError):
                p.generate_csr(common_name("example.com"))
            assert p.cache_data is not None
