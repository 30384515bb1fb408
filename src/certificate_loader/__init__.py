"""certificate-loader — resolve file and store certificate locations.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import certificate_loader
>>> certificate_loader.__version__
'0.1.0'

Quick start
-----------
::

    from certificate_loader import (
        CertificateLoader, CertificateLoaderOptions, classify_path,
        SERVER_AUTHENTICATION_OID,
    )

    loader = CertificateLoader(CertificateLoaderOptions(certificate_root_path="/etc/myapp"))
    cert = loader.load_certificate(classify_path("certs/server.pfx"), SERVER_AUTHENTICATION_OID)
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Locations
# ------------------------------------------------------------------
from certificate_loader.errors import ConfigurationError
from certificate_loader.location import (
    CertificateLocation,
    FileLocation,
    StoreLocation,
    StoreScope,
    classify_path,
    format_store_path,
)

# ------------------------------------------------------------------
# Certificates and usage
# ------------------------------------------------------------------
from certificate_loader.certificate import LoadedCertificate
from certificate_loader.keys import KeyAlgorithm
from certificate_loader.usage import (
    CLIENT_AUTHENTICATION_OID,
    SERVER_AUTHENTICATION_OID,
    enhanced_key_usage_display_name,
    has_enhanced_key_usage,
    resolve_enhanced_key_usage,
)

# ------------------------------------------------------------------
# Resolution
# ------------------------------------------------------------------
from certificate_loader.file_resolver import FileResolver
from certificate_loader.loader import CertificateLoader
from certificate_loader.options import CertificateLoaderOptions
from certificate_loader.store_resolver import StoreResolver
from certificate_loader.stores import (
    CertificateStore,
    DirectoryCertificateStore,
    InMemoryCertificateStore,
    StoreHandle,
)

__all__ = [
    "__version__",
    # locations
    "CertificateLocation",
    "ConfigurationError",
    "FileLocation",
    "StoreLocation",
    "StoreScope",
    "classify_path",
    "format_store_path",
    # certificates and usage
    "CLIENT_AUTHENTICATION_OID",
    "KeyAlgorithm",
    "LoadedCertificate",
    "SERVER_AUTHENTICATION_OID",
    "enhanced_key_usage_display_name",
    "has_enhanced_key_usage",
    "resolve_enhanced_key_usage",
    # resolution
    "CertificateLoader",
    "CertificateLoaderOptions",
    "CertificateStore",
    "DirectoryCertificateStore",
    "FileResolver",
    "InMemoryCertificateStore",
    "StoreHandle",
    "StoreResolver",
]
