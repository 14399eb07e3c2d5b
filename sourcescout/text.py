"""Text helpers for record matching and URL redaction.

Only the pieces shared by the normalizer, the merge engine and the tier
shaper live here.
"""
from __future__ import annotations

import re
from urllib.parse import urlsplit, urlunsplit

from unidecode import unidecode

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_key(text: str | None) -> str:
    """Case-fold and keep only ASCII letters/digits, for prefix comparisons."""
    if not text:
        return ""
    return _NON_ALNUM_RE.sub("", unidecode(text).lower())


def clean_text(text: str | None) -> str:
    """Collapse runs of whitespace left behind by scraped markup."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_query_params(url: str | None) -> str | None:
    """Drop the query string and fragment, which often carry tracking ids."""
    if not url:
        return url
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
