"""Change-detection fingerprints for segments."""

from __future__ import annotations

import hashlib


def compute_sha256(text: str) -> str:
    """Compute SHA256 hex digest of a UTF-8 string."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def fingerprint(document_id: str, heading: str, start_line: int, end_line: int) -> str:
    """Hash a segment's location, not its text.

    An edit that keeps the heading and line range yields the same fingerprint,
    so the stored embedding is reused.
    """
    return compute_sha256(f"{document_id}|{heading}|{start_line}-{end_line}")
