"""Exceptions raised while resolving certificate locations."""
from __future__ import annotations


class ConfigurationError(Exception):
    """Raised when a configured certificate location cannot be resolved.

    Covers ambiguous locations (both file and store fields set), files
    that cannot be read or parsed, private-key files that are malformed,
    use an unsupported algorithm or need a different password, and store
    searches that exhaust every candidate.
    """
