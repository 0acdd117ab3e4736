"""Content fingerprinting for near-duplicate suppression (core domain)."""

from __future__ import annotations

import hashlib

from core.normalizer import normalize_text


def normalize_for_fingerprint(text: str) -> str:
    """Normalize text for deterministic fingerprinting."""

    return normalize_text(text).strip().lower()


def compute_fingerprint(text: str) -> str:
    """Return a SHA-256 hex digest of the normalized message text.

    Chat and message identity are deliberately left out so forwards and
    reposts of the same text collapse onto one fingerprint.
    """

    payload = normalize_for_fingerprint(text)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
