"""Regex scrubbing applied before text is stored or sent to a provider."""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Iterable

REDACTED_PLACEHOLDER = "[REDACTED]"

LOGGER = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error as exc:
        LOGGER.debug("Ignoring invalid redaction pattern %r: %s", pattern, exc)
        return None


def redact(text: str, patterns: Iterable[str]) -> str:
    """Replace every match of every pattern with ``[REDACTED]``.

    Patterns are applied in order. Ones that fail to compile are skipped so a
    bad user pattern never blocks indexing.
    """
    out = text
    for pattern in patterns:
        compiled = _compile(pattern)
        if compiled is not None:
            out = compiled.sub(REDACTED_PLACEHOLDER, out)
    return out
