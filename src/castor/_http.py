"""Small HTTP-related constants shared across castor.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

# Status codes worth retrying; surfaced as ``ProviderError.retryable``.
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504})

USER_AGENT = "castor"
