"""Private key import for split certificate/key files.

The set of supported key algorithms is closed: RSA, ECDSA and DSA, keyed
by the certificate's subject public key algorithm OID. Any other OID is a
configuration error.
"""
from __future__ import annotations

import enum
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, rsa

from certificate_loader.certificate import LoadedCertificate, PrivateKey
from certificate_loader.errors import ConfigurationError


class KeyAlgorithm(enum.Enum):
    """Public key algorithms whose private keys can be attached to a certificate."""

    RSA = "1.2.840.113549.1.1.1"
    ECDSA = "1.2.840.10045.2.1"
    DSA = "1.2.840.10040.4.1"

    @classmethod
    def from_oid(cls, oid: str) -> "KeyAlgorithm":
        """Return the algorithm for a public key OID.

        Raises
        ------
        ConfigurationError
            If the OID is not one of the supported algorithms.
        """
        try:
            return cls(oid)
        except ValueError:
            raise ConfigurationError(
                f"Unknown algorithm for certificate with public key type {oid!r}."
            ) from None

    @classmethod
    def for_certificate(cls, certificate: LoadedCertificate) -> "KeyAlgorithm":
        return cls.from_oid(certificate.public_key_oid)

    @property
    def private_key_type(self) -> type:
        return _PRIVATE_KEY_TYPES[self]


_PRIVATE_KEY_TYPES: dict[KeyAlgorithm, type] = {
    KeyAlgorithm.RSA: rsa.RSAPrivateKey,
    KeyAlgorithm.ECDSA: ec.EllipticCurvePrivateKey,
    KeyAlgorithm.DSA: dsa.DSAPrivateKey,
}


def import_private_key(
    key_text: str,
    algorithm: KeyAlgorithm,
    password: Optional[str] = None,
) -> PrivateKey:
    """Import a PEM-encoded private key of the given algorithm.

    Parameters
    ----------
    key_text:
        PEM text of the key (PKCS#8, encrypted PKCS#8 or traditional).
    algorithm:
        The algorithm the key is expected to use.
    password:
        Password for an encrypted key; None for a plain key.

    Raises
    ------
    ValueError
        If the PEM data is malformed, the password is wrong, or the key
        belongs to a different algorithm.
    TypeError
        If a password is supplied for a plain key, or missing for an
        encrypted one.
    """
    key = serialization.load_pem_private_key(
        key_text.encode("utf-8"),
        password=password.encode("utf-8") if password is not None else None,
    )
    if not isinstance(key, algorithm.private_key_type):
        raise ValueError(
            f"Expected a {algorithm.name} private key, got {type(key).__name__}."
        )
    return key  # type: ignore[return-value]


def attach_private_key(
    certificate: LoadedCertificate, private_key: PrivateKey
) -> LoadedCertificate:
    """Return a new handle binding *private_key* to *certificate*.

    Raises
    ------
    ValueError
        If the key does not match the certificate's public key.
    """
    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    der = serialization.Encoding.DER
    expected = certificate.certificate.public_key().public_bytes(der, spki)
    actual = private_key.public_key().public_bytes(der, spki)
    if expected != actual:
        raise ValueError("The private key does not match the certificate's public key.")
    return LoadedCertificate(certificate=certificate.certificate, private_key=private_key)
