"""Shared fixtures — self-signed test certificates."""
from __future__ import annotations

import datetime
from typing import Callable, Optional, Sequence

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed25519, rsa
from cryptography.x509.oid import NameOID

from certificate_loader.certificate import LoadedCertificate
from certificate_loader.usage import CLIENT_AUTHENTICATION_OID

CertFactory = Callable[..., LoadedCertificate]

_KEY_CACHE: dict[str, object] = {}


def _private_key(key_type: str, fresh: bool):  # type: ignore[no-untyped-def]
    if not fresh and key_type in _KEY_CACHE:
        return _KEY_CACHE[key_type]
    if key_type == "rsa":
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    elif key_type == "ec":
        key = ec.generate_private_key(ec.SECP256R1())
    elif key_type == "dsa":
        key = dsa.generate_private_key(key_size=2048)
    elif key_type == "ed25519":
        key = ed25519.Ed25519PrivateKey.generate()
    else:
        raise ValueError(key_type)
    if not fresh:
        _KEY_CACHE[key_type] = key
    return key


def make_certificate(
    common_name: str = "test-cert",
    *,
    organization: Optional[str] = None,
    key_type: str = "rsa",
    enhanced_key_usages: Optional[Sequence[str]] = (CLIENT_AUTHENTICATION_OID,),
    not_before: Optional[datetime.datetime] = None,
    not_after: Optional[datetime.datetime] = None,
    with_key: bool = True,
    fresh_key: bool = False,
) -> LoadedCertificate:
    """Build a self-signed certificate.

    Keys are shared per algorithm unless *fresh_key* is set, which keeps
    RSA/DSA generation cost out of most tests.
    """
    key = _private_key(key_type, fresh_key)
    now = datetime.datetime.now(datetime.timezone.utc)
    not_before = not_before or now - datetime.timedelta(minutes=5)
    not_after = not_after or now + datetime.timedelta(days=7)

    attributes = [x509.NameAttribute(NameOID.COMMON_NAME, common_name)]
    if organization:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization))
    name = x509.Name(attributes)

    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
    )
    if enhanced_key_usages is not None:
        builder = builder.add_extension(
            x509.ExtendedKeyUsage([x509.ObjectIdentifier(oid) for oid in enhanced_key_usages]),
            critical=False,
        )

    algorithm = None if key_type == "ed25519" else hashes.SHA256()
    cert = builder.sign(key, algorithm)

    return LoadedCertificate(certificate=cert, private_key=key if with_key else None)


@pytest.fixture()
def make_cert() -> CertFactory:
    return make_certificate
