"""File-based certificate resolution.

A :class:`FileLocation` is loaded in one of two modes:

* **Combined container** — no ``key_path``. The file is a PEM or DER
  certificate (no private key) or a PKCS#12 container holding the
  certificate and its key, decrypted with ``password``.
* **Split certificate and key** — ``key_path`` set. The certificate file
  must hold exactly one bare certificate; the key file holds a PEM
  private key, encrypted with ``password`` when one is given.

A configured file that cannot be loaded always raises
:class:`~certificate_loader.errors.ConfigurationError`.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.serialization import pkcs12

from certificate_loader.certificate import LoadedCertificate
from certificate_loader.errors import ConfigurationError
from certificate_loader.keys import KeyAlgorithm, attach_private_key, import_private_key
from certificate_loader.location import FileLocation
from certificate_loader.options import program_base_directory

logger = logging.getLogger(__name__)

_PEM_MARKER = b"-----BEGIN"
_PEM_PRIVATE_KEY_MARKER = b"PRIVATE KEY-----"


class FileResolver:
    """Loads certificates described by a :class:`FileLocation`.

    Parameters
    ----------
    root_path:
        Directory that relative certificate and key paths are resolved
        against. Defaults to the directory of the running program.
    """

    def __init__(self, root_path: Union[Path, str, None] = None) -> None:
        self._root_path = Path(root_path) if root_path else program_base_directory()

    @property
    def root_path(self) -> Path:
        return self._root_path

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def resolve(self, location: FileLocation) -> LoadedCertificate:
        """Load the certificate (and key, when available) for *location*.

        Raises
        ------
        ConfigurationError
            If a file cannot be read, holds no certificate, or the private
            key cannot be imported.
        """
        certificate_path = self.resolve_path(location.path)

        if location.key_path:
            key_path = self.resolve_path(location.key_path)
            certificate = self._load_bare_certificate(certificate_path)
            certificate = self._load_private_key(certificate, key_path, location.password)
            if sys.platform == "win32":
                certificate = persist_key(certificate)
            return certificate

        return self._load_container(certificate_path, location.password)

    def resolve_path(self, path: str) -> Path:
        """Join *path* to the root directory unless it is already absolute."""
        return self._root_path / Path(path).expanduser()

    # ------------------------------------------------------------------
    # Combined container
    # ------------------------------------------------------------------

    def _load_container(self, path: Path, password: Optional[str]) -> LoadedCertificate:
        data = _read_bytes(path)
        logger.debug("Loading certificate container %s", path)

        if _PEM_MARKER in data:
            try:
                certificates = x509.load_pem_x509_certificates(data)
            except ValueError as exc:
                raise ConfigurationError(
                    f"The certificate file at '{path}' does not contain a PEM certificate."
                ) from exc
            return LoadedCertificate(certificate=certificates[0])

        try:
            return LoadedCertificate(certificate=x509.load_der_x509_certificate(data))
        except ValueError:
            pass

        return _load_pkcs12(path, data, password)

    # ------------------------------------------------------------------
    # Split certificate and key
    # ------------------------------------------------------------------

    def _load_bare_certificate(self, path: Path) -> LoadedCertificate:
        data = _read_bytes(path)
        message = (
            f"The certificate file at '{path}' can not be found, contains malformed "
            "data or does not contain a certificate."
        )

        if _PEM_MARKER in data:
            if _PEM_PRIVATE_KEY_MARKER in data:
                raise ConfigurationError(message)
            try:
                certificates = x509.load_pem_x509_certificates(data)
            except ValueError as exc:
                raise ConfigurationError(message) from exc
            if len(certificates) != 1:
                raise ConfigurationError(message)
            return LoadedCertificate(certificate=certificates[0])

        try:
            return LoadedCertificate(certificate=x509.load_der_x509_certificate(data))
        except ValueError as exc:
            raise ConfigurationError(message) from exc

    def _load_private_key(
        self,
        certificate: LoadedCertificate,
        key_path: Path,
        password: Optional[str],
    ) -> LoadedCertificate:
        algorithm = KeyAlgorithm.for_certificate(certificate)

        try:
            key_text = key_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(
                f"The certificate key file at '{key_path}' can not be read: {exc}"
            ) from exc

        try:
            private_key = import_private_key(key_text, algorithm, password)
            return attach_private_key(certificate, private_key)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise ConfigurationError(
                f"Error getting private key from '{key_path}': {exc}"
            ) from exc


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def persist_key(certificate: LoadedCertificate) -> LoadedCertificate:
    """Re-encode a certificate and key through a password-less PKCS#12 round trip."""
    data = certificate.to_pkcs12(None)
    private_key, cert, _ = pkcs12.load_key_and_certificates(data, None)
    if cert is None:
        raise ConfigurationError("Re-encoding the certificate key pair produced no certificate.")
    return LoadedCertificate(certificate=cert, private_key=private_key)  # type: ignore[arg-type]


def _read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise ConfigurationError(
            f"The certificate file at '{path}' can not be read: {exc}"
        ) from exc


def _load_pkcs12(path: Path, data: bytes, password: Optional[str]) -> LoadedCertificate:
    # An unset password also covers containers protected by an empty one.
    candidates = [password.encode("utf-8")] if password is not None else [None, b""]

    last_error: Optional[Exception] = None
    for candidate in candidates:
        try:
            private_key, certificate, _ = pkcs12.load_key_and_certificates(data, candidate)
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            last_error = exc
            continue

        if certificate is None:
            raise ConfigurationError(
                f"The certificate file at '{path}' does not contain a certificate."
            )
        return LoadedCertificate(certificate=certificate, private_key=private_key)  # type: ignore[arg-type]

    raise ConfigurationError(
        f"The certificate file at '{path}' contains malformed data or the password is incorrect."
    ) from last_error
