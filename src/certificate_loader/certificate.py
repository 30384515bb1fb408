"""Loaded certificate handle — an X.509 certificate plus optional private key.

Every successful load returns a fresh :class:`LoadedCertificate`. The
caller owns it; :meth:`LoadedCertificate.dispose` (or leaving a ``with``
block) drops the reference to the private key.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, dsa.DSAPrivateKey]

_SIMPLE_NAME_OIDS = (
    NameOID.COMMON_NAME,
    NameOID.ORGANIZATIONAL_UNIT_NAME,
    NameOID.ORGANIZATION_NAME,
    NameOID.EMAIL_ADDRESS,
)


@dataclass
class LoadedCertificate:
    """An X.509 certificate, optionally bound to its private key.

    Parameters
    ----------
    certificate:
        The parsed X.509 certificate.
    private_key:
        The matching private key, or None when only the public
        certificate is available.
    """

    certificate: x509.Certificate
    private_key: Optional[PrivateKey] = field(default=None, repr=False)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def subject(self) -> str:
        """Subject distinguished name in encoded order, e.g. ``CN=MyCert, O=MyOrg``."""
        return ", ".join(rdn.rfc4514_string() for rdn in self.certificate.subject.rdns)

    @property
    def simple_name(self) -> str:
        """Short display name of the subject.

        The common name when present, otherwise the first of OU, O or
        e-mail address, otherwise the full subject string.
        """
        for oid in _SIMPLE_NAME_OIDS:
            attributes = self.certificate.subject.get_attributes_for_oid(oid)
            if attributes:
                return str(attributes[0].value)
        return self.subject

    @property
    def thumbprint(self) -> str:
        """Upper-case hex SHA-1 digest of the DER-encoded certificate."""
        return self.certificate.fingerprint(hashes.SHA1()).hex().upper()

    @property
    def serial_number(self) -> int:
        return self.certificate.serial_number

    @property
    def public_key_oid(self) -> str:
        """Dotted OID of the subject public key algorithm."""
        return self.certificate.public_key_algorithm_oid.dotted_string

    # ------------------------------------------------------------------
    # Validity and usage
    # ------------------------------------------------------------------

    @property
    def not_before(self) -> datetime.datetime:
        return self.certificate.not_valid_before_utc

    @property
    def not_after(self) -> datetime.datetime:
        return self.certificate.not_valid_after_utc

    def is_time_valid(self, at: Optional[datetime.datetime] = None) -> bool:
        """Return True if *at* (default: now) is inside the validity window."""
        moment = at or datetime.datetime.now(datetime.timezone.utc)
        return self.not_before <= moment <= self.not_after

    @property
    def enhanced_key_usages(self) -> Optional[tuple[str, ...]]:
        """OIDs listed in the extended key usage extension.

        None when the certificate carries no such extension, which means
        its usage is unrestricted.
        """
        try:
            extension = self.certificate.extensions.get_extension_for_class(
                x509.ExtendedKeyUsage
            )
        except x509.ExtensionNotFound:
            return None
        return tuple(oid.dotted_string for oid in extension.value)

    @property
    def has_private_key(self) -> bool:
        return self.private_key is not None

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_pem(self) -> bytes:
        """Return the PEM-encoded certificate (without the key)."""
        return self.certificate.public_bytes(serialization.Encoding.PEM)

    def to_pkcs12(self, password: Optional[str] = None) -> bytes:
        """Serialize the certificate and key to a PKCS#12 container.

        Parameters
        ----------
        password:
            Password protecting the container. None or an empty string
            produces an unencrypted container.
        """
        if password:
            encryption: serialization.KeySerializationEncryption = (
                serialization.BestAvailableEncryption(password.encode("utf-8"))
            )
        else:
            encryption = serialization.NoEncryption()

        return pkcs12.serialize_key_and_certificates(
            name=self.simple_name.encode("utf-8"),
            key=self.private_key,
            cert=self.certificate,
            cas=None,
            encryption_algorithm=encryption,
        )

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def dispose(self) -> None:
        """Release the private key held by this handle."""
        self.private_key = None

    def __enter__(self) -> "LoadedCertificate":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()
