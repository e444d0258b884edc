from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlparse


_LABEL_RE = re.compile(r'^(?!-)[a-z0-9-]{1,63}(?<!-)$')
_TLD_RE = re.compile(r'^[a-z][a-z0-9-]{1,62}$')


def normalize_domain(raw: Optional[str]) -> str:
    """Lowercase, strip whitespace and a single trailing dot."""

    value = (raw or '').strip().lower()
    if value.endswith('.'):
        value = value[:-1]
    return value


def is_valid_fqdn(raw: Optional[str]) -> bool:
    """Pure FQDN check for owner-supplied custom domains.

    Requires at least two labels, an alphabetic TLD and no scheme/path.
    IDNs must be submitted in their punycode (xn--) form.
    """

    value = normalize_domain(raw)
    if not value or len(value) > 253:
        return False

    labels = value.split('.')
    if len(labels) < 2:
        return False

    if not all(_LABEL_RE.match(label) for label in labels):
        return False

    return bool(_TLD_RE.match(labels[-1]))


def is_valid_url(raw: Optional[str]) -> bool:
    if not raw:
        return False

    try:
        parsed = urlparse(raw)
    except ValueError:
        return False

    if parsed.scheme not in ('http', 'https'):
        return False

    return bool(parsed.hostname)


def challenge_name(domain: str, prefix: str) -> str:
    """Name of the TXT record carrying the verification token."""

    return f'{prefix}.{normalize_domain(domain)}'
