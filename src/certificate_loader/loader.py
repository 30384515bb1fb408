"""CertificateLoader — loads certificates from files or certificate stores.

Example
-------
::

    from certificate_loader import CertificateLoader, SERVER_AUTHENTICATION_OID, classify_path

    loader = CertificateLoader()
    cert = loader.load_certificate(
        classify_path(r"cert:\\CurrentUser\\My\\localhost"),
        SERVER_AUTHENTICATION_OID,
    )
"""
from __future__ import annotations

import logging
from typing import Optional, Union

from certificate_loader.certificate import LoadedCertificate
from certificate_loader.errors import ConfigurationError
from certificate_loader.file_resolver import FileResolver
from certificate_loader.location import CertificateLocation, FileLocation, StoreLocation
from certificate_loader.options import CertificateLoaderOptions
from certificate_loader.store_resolver import StoreResolver
from certificate_loader.stores import CertificateStore, DirectoryCertificateStore
from certificate_loader.usage import enhanced_key_usage_display_name, has_enhanced_key_usage

LocationInput = Union[CertificateLocation, FileLocation, StoreLocation, None]


class CertificateLoader:
    """Loads a certificate described by a file or store location.

    Parameters
    ----------
    options:
        Loader options. Defaults to :class:`CertificateLoaderOptions` with
        no overrides.
    store:
        Certificate store backend for store locations. Defaults to a
        :class:`DirectoryCertificateStore` rooted at
        ``options.store_root_path``.
    logger:
        Logger for load diagnostics. Defaults to this module's logger.
    """

    def __init__(
        self,
        options: Optional[CertificateLoaderOptions] = None,
        store: Optional[CertificateStore] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._options = options or CertificateLoaderOptions()
        self._store = store
        self._logger = logger or logging.getLogger(__name__)

    @property
    def options(self) -> CertificateLoaderOptions:
        return self._options

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def load_certificate(
        self,
        location: LocationInput,
        enhanced_key_usage: Optional[str] = None,
    ) -> Optional[LoadedCertificate]:
        """Load the certificate for *location*.

        Parameters
        ----------
        location:
            A :class:`FileLocation`, a :class:`StoreLocation`, a
            :class:`CertificateLocation` settings model, or None.
        enhanced_key_usage:
            OID of the extended key usage the certificate must allow, e.g.
            :data:`~certificate_loader.usage.SERVER_AUTHENTICATION_OID`.

        Returns
        -------
        LoadedCertificate | None
            The certificate, or None when no location is configured or a
            file certificate does not allow *enhanced_key_usage*.

        Raises
        ------
        ConfigurationError
            If the settings name both a file and a store certificate, a
            file cannot be loaded, or no store certificate matches.
        """
        usage_name = enhanced_key_usage_display_name(enhanced_key_usage)
        try:
            certificate = self._load(location, enhanced_key_usage, usage_name)
        except ConfigurationError:
            self._log_not_found(location, usage_name)
            raise

        if certificate is None:
            self._log_not_found(location, usage_name)
        else:
            self._logger.debug(
                'Certificate loaded: Subject="%s", Thumbprint="%s", EnhancedKeyUsage="%s"',
                certificate.subject,
                certificate.thumbprint,
                usage_name,
            )

        return certificate

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _load(
        self,
        location: LocationInput,
        enhanced_key_usage: Optional[str],
        usage_name: Optional[str],
    ) -> Optional[LoadedCertificate]:
        if isinstance(location, CertificateLocation):
            resolved = location.to_location()
        else:
            resolved = location

        certificate: Optional[LoadedCertificate] = None

        if isinstance(resolved, FileLocation):
            resolver = FileResolver(self._options.resolved_certificate_root())
            certificate = resolver.resolve(resolved)
            if not has_enhanced_key_usage(certificate, enhanced_key_usage):
                self._logger.debug(
                    "Certificate %r does not allow enhanced key usage %r",
                    certificate.subject,
                    usage_name,
                )
                certificate.dispose()
                certificate = None
        elif isinstance(resolved, StoreLocation):
            certificate = StoreResolver(self._get_store()).resolve(resolved, enhanced_key_usage)

        return certificate

    def _log_not_found(self, location: LocationInput, usage_name: Optional[str]) -> None:
        self._logger.debug(
            'Certificate not found: %s, EnhancedKeyUsage="%s"',
            location if location is not None else "(none)",
            usage_name,
        )

    def _get_store(self) -> CertificateStore:
        if self._store is None:
            self._store = DirectoryCertificateStore(self._options.resolved_store_root())
        return self._store
