"""Certificate stores — abstract interface and two implementations.

A :class:`CertificateStore` is a set of named stores (``My``, ``Root``,
...) per :class:`~certificate_loader.location.StoreScope`. Opening a
store yields a :class:`StoreHandle`, a context manager that enumerates the
store's certificates and answers subject and thumbprint queries.

:class:`InMemoryCertificateStore` keeps certificates in memory.
:class:`DirectoryCertificateStore` persists them under a base directory as
``<base_dir>/<scope>/<store>/<file>``, where each file is a PKCS#12
container (``.pfx``/``.p12``, no password) or a PEM/DER certificate
(``.pem``/``.crt``/``.cer``; a PEM file may also carry the private key).
"""
from __future__ import annotations

import logging
import re
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.serialization import load_pem_private_key, pkcs12

from certificate_loader.certificate import LoadedCertificate
from certificate_loader.keys import attach_private_key
from certificate_loader.location import DEFAULT_STORE_NAME, StoreScope

logger = logging.getLogger(__name__)

_CONTAINER_SUFFIXES = frozenset({".pfx", ".p12"})
_CERTIFICATE_SUFFIXES = frozenset({".pem", ".crt", ".cer"})

_PEM_KEY_BLOCK = re.compile(
    rb"-----BEGIN (?P<label>(?:RSA |EC |DSA )?PRIVATE KEY)-----.+?-----END (?P=label)-----",
    re.DOTALL,
)


# ------------------------------------------------------------------
# Handles
# ------------------------------------------------------------------


class StoreHandle(ABC):
    """An open certificate store.

    Parameters
    ----------
    store_name:
        Name of the open store.
    scope:
        Scope of the open store.
    """

    def __init__(self, store_name: str, scope: StoreScope) -> None:
        self.store_name = store_name
        self.scope = scope
        self._closed = False

    @abstractmethod
    def _certificates(self) -> Iterable[LoadedCertificate]:
        """Yield every certificate in the store."""

    def __iter__(self) -> Iterator[LoadedCertificate]:
        if self._closed:
            raise ValueError(f"Store {self.scope.value}/{self.store_name} is closed.")
        return iter(self._certificates())

    def find_by_subject_name(
        self, subject: str, valid_only: bool = False
    ) -> list[LoadedCertificate]:
        """Return certificates whose subject contains *subject* (case-insensitive).

        Parameters
        ----------
        subject:
            Substring to look for in the subject distinguished name.
        valid_only:
            Exclude certificates outside their validity window.
        """
        needle = subject.lower()
        return [
            cert
            for cert in self
            if needle in cert.subject.lower() and (not valid_only or cert.is_time_valid())
        ]

    def find_by_thumbprint(
        self, thumbprint: str, valid_only: bool = False
    ) -> list[LoadedCertificate]:
        """Return certificates whose thumbprint equals *thumbprint* (case-insensitive)."""
        wanted = thumbprint.strip().upper()
        return [
            cert
            for cert in self
            if cert.thumbprint == wanted and (not valid_only or cert.is_time_valid())
        ]

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "StoreHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class _SnapshotHandle(StoreHandle):
    """Handle over a fixed list of certificates, yielding a fresh copy of each."""

    def __init__(
        self, store_name: str, scope: StoreScope, certificates: list[LoadedCertificate]
    ) -> None:
        super().__init__(store_name, scope)
        self._snapshot = certificates

    def _certificates(self) -> Iterable[LoadedCertificate]:
        for cert in self._snapshot:
            yield LoadedCertificate(certificate=cert.certificate, private_key=cert.private_key)

    def close(self) -> None:
        super().close()
        self._snapshot = []


class _DirectoryHandle(StoreHandle):
    """Handle reading certificate files from a store directory on each enumeration."""

    def __init__(self, store_name: str, scope: StoreScope, directory: Path) -> None:
        super().__init__(store_name, scope)
        self._directory = directory

    def _certificates(self) -> Iterable[LoadedCertificate]:
        if not self._directory.is_dir():
            return
        for entry in sorted(self._directory.iterdir()):
            if not entry.is_file():
                continue
            cert = _read_store_entry(entry)
            if cert is not None:
                yield cert


# ------------------------------------------------------------------
# Stores
# ------------------------------------------------------------------


class CertificateStore(ABC):
    """Abstract base class for certificate store backends."""

    @abstractmethod
    def open(
        self,
        store_name: str = DEFAULT_STORE_NAME,
        scope: StoreScope = StoreScope.CURRENT_USER,
        read_only: bool = True,
    ) -> StoreHandle:
        """Open a store for enumeration.

        Parameters
        ----------
        store_name:
            Name of the store, matched case-insensitively.
        scope:
            Scope of the store.
        read_only:
            When False, the store is created if it does not exist yet.

        Returns
        -------
        StoreHandle
            The open store. Opening a missing store read-only yields an
            empty handle.
        """

    @abstractmethod
    def add(
        self,
        certificate: LoadedCertificate,
        store_name: str = DEFAULT_STORE_NAME,
        scope: StoreScope = StoreScope.CURRENT_USER,
    ) -> None:
        """Add a certificate (and its key, if any) to a store."""

    @abstractmethod
    def remove(
        self,
        thumbprint: str,
        store_name: str = DEFAULT_STORE_NAME,
        scope: StoreScope = StoreScope.CURRENT_USER,
    ) -> None:
        """Remove the certificate with *thumbprint* from a store.

        Raises
        ------
        KeyError
            If the store holds no certificate with that thumbprint.
        """

    @abstractmethod
    def list_stores(self, scope: StoreScope = StoreScope.CURRENT_USER) -> list[str]:
        """Return the names of the stores that exist in *scope*."""


class InMemoryCertificateStore(CertificateStore):
    """Thread-safe in-memory certificate store."""

    def __init__(self) -> None:
        self._stores: dict[tuple[StoreScope, str], list[LoadedCertificate]] = {}
        self._names: dict[tuple[StoreScope, str], str] = {}
        self._lock = threading.Lock()

    def open(
        self,
        store_name: str = DEFAULT_STORE_NAME,
        scope: StoreScope = StoreScope.CURRENT_USER,
        read_only: bool = True,
    ) -> StoreHandle:
        key = (scope, store_name.lower())
        with self._lock:
            if not read_only and key not in self._stores:
                self._stores[key] = []
                self._names[key] = store_name
            certificates = list(self._stores.get(key, []))
        return _SnapshotHandle(store_name, scope, certificates)

    def add(
        self,
        certificate: LoadedCertificate,
        store_name: str = DEFAULT_STORE_NAME,
        scope: StoreScope = StoreScope.CURRENT_USER,
    ) -> None:
        key = (scope, store_name.lower())
        with self._lock:
            self._names.setdefault(key, store_name)
            self._stores.setdefault(key, []).append(
                LoadedCertificate(
                    certificate=certificate.certificate,
                    private_key=certificate.private_key,
                )
            )

    def remove(
        self,
        thumbprint: str,
        store_name: str = DEFAULT_STORE_NAME,
        scope: StoreScope = StoreScope.CURRENT_USER,
    ) -> None:
        key = (scope, store_name.lower())
        wanted = thumbprint.strip().upper()
        with self._lock:
            certificates = self._stores.get(key, [])
            remaining = [c for c in certificates if c.thumbprint != wanted]
            if len(remaining) == len(certificates):
                raise KeyError(
                    f"No certificate with thumbprint {thumbprint!r} in "
                    f"{scope.value}/{store_name}"
                )
            self._stores[key] = remaining

    def list_stores(self, scope: StoreScope = StoreScope.CURRENT_USER) -> list[str]:
        with self._lock:
            return sorted(name for (s, _), name in self._names.items() if s is scope)


class DirectoryCertificateStore(CertificateStore):
    """Filesystem-backed certificate store.

    Stores live under *base_dir* as ``<scope>/<store>`` directories with
    lower-cased names; certificates added through :meth:`add` are written
    as password-less ``<thumbprint>.pfx`` files.

    Parameters
    ----------
    base_dir:
        Root directory for all stores.
    """

    def __init__(self, base_dir: Union[Path, str]) -> None:
        self._base_dir = Path(base_dir).expanduser()
        self._lock = threading.Lock()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    # ------------------------------------------------------------------
    # CertificateStore interface
    # ------------------------------------------------------------------

    def open(
        self,
        store_name: str = DEFAULT_STORE_NAME,
        scope: StoreScope = StoreScope.CURRENT_USER,
        read_only: bool = True,
    ) -> StoreHandle:
        directory = self._store_dir(store_name, scope)
        if not read_only:
            directory.mkdir(parents=True, exist_ok=True)
        return _DirectoryHandle(store_name, scope, directory)

    def add(
        self,
        certificate: LoadedCertificate,
        store_name: str = DEFAULT_STORE_NAME,
        scope: StoreScope = StoreScope.CURRENT_USER,
    ) -> None:
        """Write the certificate as ``<thumbprint>.pfx`` into the store directory."""
        directory = self._store_dir(store_name, scope)
        with self._lock:
            directory.mkdir(parents=True, exist_ok=True)
            (directory / f"{certificate.thumbprint}.pfx").write_bytes(
                certificate.to_pkcs12(None)
            )
        logger.info(
            "Added certificate %s (%s) to %s/%s",
            certificate.thumbprint,
            certificate.subject,
            scope.value,
            store_name,
        )

    def remove(
        self,
        thumbprint: str,
        store_name: str = DEFAULT_STORE_NAME,
        scope: StoreScope = StoreScope.CURRENT_USER,
    ) -> None:
        directory = self._store_dir(store_name, scope)
        wanted = thumbprint.strip().upper()
        removed = False
        with self._lock:
            if directory.is_dir():
                for entry in sorted(directory.iterdir()):
                    cert = _read_store_entry(entry) if entry.is_file() else None
                    if cert is not None and cert.thumbprint == wanted:
                        entry.unlink()
                        removed = True
        if not removed:
            raise KeyError(
                f"No certificate with thumbprint {thumbprint!r} in {scope.value}/{store_name}"
            )
        logger.info("Removed certificate %s from %s/%s", wanted, scope.value, store_name)

    def list_stores(self, scope: StoreScope = StoreScope.CURRENT_USER) -> list[str]:
        scope_dir = self._base_dir / scope.value.lower()
        if not scope_dir.is_dir():
            return []
        return sorted(d.name for d in scope_dir.iterdir() if d.is_dir())

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _store_dir(self, store_name: str, scope: StoreScope) -> Path:
        safe_name = store_name.lower().replace("/", "_").replace("\\", "_")
        return self._base_dir / scope.value.lower() / safe_name


def _read_store_entry(path: Path) -> Optional[LoadedCertificate]:
    """Parse one store file, returning None (and logging) if it is unusable."""
    suffix = path.suffix.lower()
    if suffix not in _CONTAINER_SUFFIXES and suffix not in _CERTIFICATE_SUFFIXES:
        return None

    try:
        data = path.read_bytes()
        if suffix in _CONTAINER_SUFFIXES:
            private_key, certificate, _ = pkcs12.load_key_and_certificates(data, None)
            if certificate is None:
                raise ValueError("container holds no certificate")
            return LoadedCertificate(certificate=certificate, private_key=private_key)  # type: ignore[arg-type]

        if b"-----BEGIN" not in data:
            return LoadedCertificate(certificate=x509.load_der_x509_certificate(data))

        loaded = LoadedCertificate(certificate=x509.load_pem_x509_certificates(data)[0])
    except (OSError, ValueError, TypeError, UnsupportedAlgorithm) as exc:
        logger.warning("Skipping unreadable certificate store entry %s: %s", path, exc)
        return None

    key_block = _PEM_KEY_BLOCK.search(data)
    if key_block is None:
        return loaded
    try:
        private_key = load_pem_private_key(key_block.group(0), password=None)
        return attach_private_key(loaded, private_key)  # type: ignore[arg-type]
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        logger.warning("Ignoring unusable private key in store entry %s: %s", path, exc)
        return loaded
