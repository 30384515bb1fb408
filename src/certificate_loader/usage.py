"""Extended key usage (EKU) matching.

A certificate matches a required usage when it lists the usage OID in its
extended key usage extension, or when it has no such extension at all
(an absent extension places no restriction on usage).
"""
from __future__ import annotations

import re
from typing import Optional

from certificate_loader.certificate import LoadedCertificate

SERVER_AUTHENTICATION_OID = "1.3.6.1.5.5.7.3.1"
CLIENT_AUTHENTICATION_OID = "1.3.6.1.5.5.7.3.2"

_DISPLAY_NAMES = {
    SERVER_AUTHENTICATION_OID: "Server Authentication",
    CLIENT_AUTHENTICATION_OID: "Client Authentication",
}

_ALIASES = {
    "server": SERVER_AUTHENTICATION_OID,
    "server-authentication": SERVER_AUTHENTICATION_OID,
    "client": CLIENT_AUTHENTICATION_OID,
    "client-authentication": CLIENT_AUTHENTICATION_OID,
}

_OID_PATTERN = re.compile(r"^[0-2](\.\d+)+$")


def has_enhanced_key_usage(
    certificate: LoadedCertificate, enhanced_key_usage: Optional[str]
) -> bool:
    """Return True if *certificate* may be used for *enhanced_key_usage*.

    Parameters
    ----------
    certificate:
        The certificate to check.
    enhanced_key_usage:
        Dotted OID of the required usage, or None for no requirement.
    """
    if enhanced_key_usage is None:
        return True

    usages = certificate.enhanced_key_usages
    if usages is None:
        return True

    return enhanced_key_usage in usages


def enhanced_key_usage_display_name(oid: Optional[str]) -> Optional[str]:
    """Return a human-readable name for a usage OID (the OID itself if unknown)."""
    if oid is None:
        return None
    return _DISPLAY_NAMES.get(oid, oid)


def resolve_enhanced_key_usage(value: Optional[str]) -> Optional[str]:
    """Map a usage alias or dotted OID to a dotted OID.

    ``server``/``server-authentication`` and ``client``/``client-authentication``
    are accepted case-insensitively.

    Raises
    ------
    ValueError
        If *value* is neither a known alias nor a dotted OID.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    alias = _ALIASES.get(text.lower())
    if alias is not None:
        return alias
    if _OID_PATTERN.match(text):
        return text
    raise ValueError(f"Unknown enhanced key usage {value!r}")
