"""Loader options — certificate root directory and default store location.

Options can be constructed directly or read from the environment::

    CERTIFICATE_LOADER_ROOT_PATH   root for relative certificate file paths
    CERTIFICATE_LOADER_STORE_PATH  base directory of the directory-backed store
"""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, field_validator

ROOT_PATH_ENV = "CERTIFICATE_LOADER_ROOT_PATH"
STORE_PATH_ENV = "CERTIFICATE_LOADER_STORE_PATH"

DEFAULT_STORE_ROOT = Path("~/.certificate-loader/x509stores")


def program_base_directory() -> Path:
    """Directory of the running program, or the working directory if unknown."""
    argv0 = sys.argv[0] if sys.argv else ""
    if argv0 and argv0 != "-c":
        return Path(argv0).resolve().parent
    return Path.cwd()


class CertificateLoaderOptions(BaseModel):
    """Options for :class:`~certificate_loader.loader.CertificateLoader`.

    Parameters
    ----------
    certificate_root_path:
        Base directory for relative certificate and key paths. When unset
        or blank, the directory of the running program is used.
    store_root_path:
        Base directory for the default directory-backed certificate store.
    """

    certificate_root_path: Optional[Path] = None
    store_root_path: Optional[Path] = None

    @field_validator("certificate_root_path", "store_root_path", mode="before")
    @classmethod
    def _blank_as_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CertificateLoaderOptions":
        """Build options from environment variables."""
        env = os.environ if environ is None else environ
        return cls(
            certificate_root_path=env.get(ROOT_PATH_ENV),
            store_root_path=env.get(STORE_PATH_ENV),
        )

    def resolved_certificate_root(self) -> Path:
        if self.certificate_root_path is None:
            return program_base_directory()
        return self.certificate_root_path.expanduser()

    def resolved_store_root(self) -> Path:
        return (self.store_root_path or DEFAULT_STORE_ROOT).expanduser()
