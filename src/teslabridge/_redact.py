"""Redaction for debug logs.

The bridge holds a long-lived refresh credential and short-lived bearer
tokens. Anything that may contain them goes through this module before it
is logged.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

REDACTED = "<redacted>"

# Matched after lowercasing and dropping "_" / "-", so "access_token",
# "accessToken" and "Access-Token" are all caught.
_SECRET_KEYS: frozenset[str] = frozenset(
    {
        "accesstoken",
        "authorization",
        "idtoken",
        "password",
        "refreshtoken",
        "token",
    }
)


def is_secret_key(key: object) -> bool:
    return str(key).lower().replace("_", "").replace("-", "") in _SECRET_KEYS


def mask_token(token: str | None) -> str:
    """Short fingerprint of *token*: the first four characters and the length."""
    if not token:
        return "<none>"
    return f"{token[:4]}...({len(token)} chars)"


def redact_for_log(value: Any, *, max_string: int = 512) -> Any:
    """Return a copy of *value* with secret fields replaced.

    Mappings and lists are walked; long strings are cut at *max_string*.
    The input is never modified.
    """
    if isinstance(value, Mapping):
        return {
            str(k): REDACTED if is_secret_key(k) else redact_for_log(v, max_string=max_string)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_for_log(item, max_string=max_string) for item in value]
    if isinstance(value, str) and len(value) > max_string:
        return value[:max_string] + "...<truncated>"
    return value
