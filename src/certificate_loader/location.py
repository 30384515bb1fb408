"""Certificate locations — file-based and store-based descriptors.

A certificate is located either on the file system (a certificate file,
an optional separate private-key file and an optional password) or in a
certificate store (store name, store scope and a subject or thumbprint
search term). The two variants are modelled as separate immutable types,
:class:`FileLocation` and :class:`StoreLocation`, so an instance can never
describe both at once.

:class:`CertificateLocation` is the flat, all-optional settings model that
configuration files bind to. Its :meth:`CertificateLocation.to_location`
method converts it to one of the two variants, rejecting settings that
name both a file and a store certificate.

Store paths
-----------
A single string can describe either variant::

    cert:\\CurrentUser\\My\\0123456789ABCDEF0123456789ABCDEF01234567
    cert:\\LocalMachine\\My\\CN=MyCert, O=MyOrg
    cert:/LocalMachine/My/MyCert
    certs/mycert.pfx

:func:`classify_path` recognizes the ``cert:`` form (case-insensitive,
``\\`` and ``/`` interchangeable) and treats everything else as a file
path.
"""
from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Optional, Union

from pydantic import BaseModel, Field, field_validator

from certificate_loader.errors import ConfigurationError

DEFAULT_STORE_NAME = "My"

_STORE_PATH_PATTERN = re.compile(
    r"^cert:[\\/](?P<location>[^\\/]+)[\\/](?P<store>[^\\/]+)[\\/](?P<subject>.*\S.*)$",
    re.IGNORECASE | re.DOTALL,
)


class StoreScope(str, enum.Enum):
    """Visibility domain of a certificate store."""

    CURRENT_USER = "CurrentUser"
    LOCAL_MACHINE = "LocalMachine"

    @classmethod
    def parse(cls, value: "StoreScope | str") -> "StoreScope":
        """Parse a scope name case-insensitively.

        ``"CurrentUser"``, ``"currentuser"`` and ``"current_user"`` are all
        accepted.

        Raises
        ------
        ConfigurationError
            If *value* does not name a known scope.
        """
        if isinstance(value, StoreScope):
            return value
        normalized = value.strip().replace("_", "").replace("-", "").lower()
        for scope in cls:
            if scope.value.lower() == normalized:
                return scope
        raise ConfigurationError(
            f"Unknown certificate store location {value!r}; "
            f"expected one of {', '.join(s.value for s in cls)}."
        )


# ------------------------------------------------------------------
# Location variants
# ------------------------------------------------------------------


@dataclass(frozen=True)
class FileLocation:
    """A certificate stored on the file system.

    Parameters
    ----------
    path:
        Path to the certificate file (PEM, DER or PKCS#12). Relative paths
        are resolved against the loader's certificate root directory.
    key_path:
        Path to a separate PEM-encoded private key for the certificate.
    password:
        Password for the PKCS#12 file, or for the private key file when
        *key_path* is set. Never included in the display form.
    """

    path: str
    key_path: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.path or not self.path.strip():
            raise ValueError("A file certificate location requires a path.")

    def __str__(self) -> str:
        parts = [f"Path={self.path}"]
        if self.key_path and self.key_path.strip():
            parts.append(f"KeyPath={self.key_path}")
        return f"({', '.join(parts)})"


@dataclass(frozen=True)
class StoreLocation:
    """A certificate held in a certificate store.

    Parameters
    ----------
    subject:
        Search term: a full or partial subject name, or a thumbprint.
    store_name:
        Name of the store to search. Defaults to ``"My"``.
    store_scope:
        Scope of the store. Defaults to :attr:`StoreScope.CURRENT_USER`.
        Text values are kept as given and parsed when the store is opened.
    allow_invalid:
        Include expired and not-yet-valid certificates in the search.
    require_private_key:
        Only consider certificates whose private key is available.
    """

    subject: str
    store_name: Optional[str] = None
    store_scope: Union[StoreScope, str, None] = None
    allow_invalid: bool = False
    require_private_key: bool = True

    def __post_init__(self) -> None:
        if not self.subject or not self.subject.strip():
            raise ValueError("A store certificate location requires a subject or thumbprint.")

    @property
    def effective_store_name(self) -> str:
        """Store name, falling back to the personal store."""
        return self.store_name or DEFAULT_STORE_NAME

    @property
    def effective_scope(self) -> StoreScope:
        """Parsed store scope, falling back to the current user.

        Raises
        ------
        ConfigurationError
            If the configured scope is not a known scope name.
        """
        if self.store_scope is None or self.store_scope == "":
            return StoreScope.CURRENT_USER
        return StoreScope.parse(self.store_scope)

    def __str__(self) -> str:
        parts = [f"Subject={self.subject}"]
        if self.store_name:
            parts.append(f"Store={self.store_name}")
        if self.store_scope:
            scope = self.store_scope
            parts.append(f"Location={scope.value if isinstance(scope, StoreScope) else scope}")
        parts.append(f"AllowInvalid={self.allow_invalid}")
        return f"({', '.join(parts)})"


Location = Union[FileLocation, StoreLocation]


# ------------------------------------------------------------------
# Store path parsing
# ------------------------------------------------------------------


def classify_path(path: str) -> Location:
    """Classify *path* as a store location or a file location.

    Strings of the form ``cert:\\<location>\\<store>\\<subject>`` become a
    :class:`StoreLocation`; the subject segment is the remainder of the
    string and may itself contain separators. Every other string,
    including store paths with too few segments or a blank subject,
    becomes a :class:`FileLocation` holding the input verbatim.

    Raises
    ------
    ValueError
        If *path* is empty or whitespace.
    """
    if path is None or not path.strip():
        raise ValueError("Certificate path must not be empty.")

    match = _STORE_PATH_PATTERN.match(path)
    if match is None:
        return FileLocation(path=path)

    return StoreLocation(
        subject=match.group("subject"),
        store_name=match.group("store"),
        store_scope=match.group("location"),
    )


def format_store_path(location: StoreLocation, separator: str = "\\") -> str:
    """Return the ``cert:`` path that :func:`classify_path` maps back to *location*."""
    if separator not in ("\\", "/"):
        raise ValueError(f"Unsupported store path separator {separator!r}")
    scope = location.store_scope or StoreScope.CURRENT_USER
    scope_text = scope.value if isinstance(scope, StoreScope) else scope
    return separator.join(
        ["cert:", scope_text, location.effective_store_name, location.subject]
    )


# ------------------------------------------------------------------
# Settings model
# ------------------------------------------------------------------


class CertificateLocation(BaseModel):
    """Flat certificate settings as bound from configuration.

    Either the file fields (``path``, ``key_path``, ``password``) or the
    store fields (``subject``/``thumbprint``, ``store``, ``location``,
    ``allow_invalid``, ``require_private_key``) are expected to be set.
    Blank strings count as unset, on construction and on assignment.
    """

    path: Optional[str] = None
    key_path: Optional[str] = None
    password: Optional[str] = Field(default=None, repr=False)
    subject: Optional[str] = None
    thumbprint: Optional[str] = None
    store: Optional[str] = None
    location: Optional[str] = None
    allow_invalid: Optional[bool] = None
    require_private_key: Optional[bool] = None

    model_config = {"validate_assignment": True}

    @field_validator("path", "key_path", "subject", "thumbprint", "store", "location", mode="before")
    @classmethod
    def _blank_as_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_path(cls, path: str) -> "CertificateLocation":
        """Build settings from a file path or ``cert:`` store path."""
        classified = classify_path(path)
        if isinstance(classified, FileLocation):
            return cls(path=classified.path)
        return cls(
            subject=classified.subject,
            store=classified.store_name,
            location=classified.store_scope or None,
        )

    @property
    def is_file_certificate(self) -> bool:
        return bool(self.path)

    @property
    def is_store_certificate(self) -> bool:
        return bool(self.subject) or bool(self.thumbprint)

    @property
    def is_empty(self) -> bool:
        return not self.is_file_certificate and not self.is_store_certificate

    def to_location(self) -> Optional[Location]:
        """Convert to a :class:`FileLocation` or :class:`StoreLocation`.

        Returns
        -------
        FileLocation | StoreLocation | None
            ``None`` when no certificate has been configured.

        Raises
        ------
        ConfigurationError
            If both a file and a store certificate have been configured.
        """
        if self.is_file_certificate and self.is_store_certificate:
            raise ConfigurationError(
                f"Ambiguous certificate source {self}: configure a file "
                "certificate or a store certificate, but not both."
            )

        if self.is_file_certificate:
            return FileLocation(
                path=self.path,  # type: ignore[arg-type]
                key_path=self.key_path or None,
                password=self.password,
            )

        if self.is_store_certificate:
            return StoreLocation(
                subject=self.subject or self.thumbprint,  # type: ignore[arg-type]
                store_name=self.store or None,
                store_scope=self.location or None,
                allow_invalid=bool(self.allow_invalid),
                require_private_key=(
                    True if self.require_private_key is None else self.require_private_key
                ),
            )

        return None

    def __str__(self) -> str:
        parts: list[str] = []
        if self.is_file_certificate:
            parts.append(f"Path={self.path}")
            if self.key_path and self.key_path.strip():
                parts.append(f"KeyPath={self.key_path}")
        elif self.is_store_certificate:
            parts.append(f"Subject={self.subject or self.thumbprint}")
            if self.store and self.store.strip():
                parts.append(f"Store={self.store}")
            if self.location and self.location.strip():
                parts.append(f"Location={self.location}")
        parts.append(f"AllowInvalid={bool(self.allow_invalid)}")
        return f"({', '.join(parts)})"
