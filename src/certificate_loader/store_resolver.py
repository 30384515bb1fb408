"""Store-based certificate resolution.

The search term of a :class:`StoreLocation` may be a subject name (full
or partial) or a thumbprint. The store is searched in two phases:

1. Subject phase: certificates whose subject contains the term. An exact
   (case-insensitive) match on the simple name wins; otherwise the first
   candidate is kept as a fallback and returned.
2. Thumbprint phase, only when the subject phase found no candidates:
   certificates whose thumbprint equals the term.

Both phases drop certificates that are outside their validity window
(unless ``allow_invalid``), that do not allow the required extended key
usage, or that lack a private key (when ``require_private_key``), and
order the rest by expiry, latest first.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from certificate_loader.certificate import LoadedCertificate
from certificate_loader.errors import ConfigurationError
from certificate_loader.location import StoreLocation
from certificate_loader.stores import CertificateStore
from certificate_loader.usage import has_enhanced_key_usage

logger = logging.getLogger(__name__)


class StoreResolver:
    """Selects a single certificate from a certificate store.

    Parameters
    ----------
    store:
        The store backend to search.
    """

    def __init__(self, store: CertificateStore) -> None:
        self._store = store

    def resolve(
        self,
        location: StoreLocation,
        enhanced_key_usage: Optional[str] = None,
    ) -> LoadedCertificate:
        """Find the certificate described by *location*.

        Parameters
        ----------
        location:
            Store, scope and search term.
        enhanced_key_usage:
            OID the certificate must allow, or None.

        Returns
        -------
        LoadedCertificate
            The selected certificate.

        Raises
        ------
        ConfigurationError
            If the scope is unknown or no certificate matches.
        """
        subject = location.subject
        store_name = location.effective_store_name
        scope = location.effective_scope
        valid_only = not location.allow_invalid

        with self._store.open(store_name, scope, read_only=True) as handle:
            fallback: Optional[LoadedCertificate] = None

            by_subject = self._candidates(
                handle.find_by_subject_name(subject, valid_only),
                enhanced_key_usage,
                location.require_private_key,
            )
            for cert in by_subject:
                if fallback is None:
                    fallback = cert
                if cert.simple_name.lower() == subject.lower():
                    logger.debug("Exact subject match for %r in %s/%s", subject, scope.value, store_name)
                    return cert

            if fallback is not None:
                logger.debug(
                    "No exact subject match for %r in %s/%s; using %r",
                    subject,
                    scope.value,
                    store_name,
                    fallback.subject,
                )
                return fallback

            by_thumbprint = self._candidates(
                handle.find_by_thumbprint(subject, valid_only),
                enhanced_key_usage,
                location.require_private_key,
            )
            if by_thumbprint:
                logger.debug("Thumbprint match for %r in %s/%s", subject, scope.value, store_name)
                return by_thumbprint[0]

        raise ConfigurationError(
            f"The requested certificate {subject!r} could not be found in "
            f"{scope.value}/{store_name}."
        )

    @staticmethod
    def _candidates(
        certificates: Iterable[LoadedCertificate],
        enhanced_key_usage: Optional[str],
        require_private_key: bool,
    ) -> list[LoadedCertificate]:
        matching = [
            cert
            for cert in certificates
            if has_enhanced_key_usage(cert, enhanced_key_usage)
            and (cert.has_private_key or not require_private_key)
        ]
        return sorted(matching, key=lambda cert: cert.not_after, reverse=True)
