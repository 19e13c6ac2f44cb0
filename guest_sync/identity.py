"""Canonical forms for device identifiers, venue labels and guest names.

These are pure functions shared by onboarding, manual setup and the sync hot
path, so a MAC typed into the setup page and one arriving on a webhook always
produce the same lookup key.
"""

from __future__ import annotations

import re

_SEPARATORS = re.compile(r"[:\-.\s]")
_HEX12 = re.compile(r"^[0-9a-f]{12}$")
_APOSTROPHES = re.compile(r"['‘’]")
_NON_WORD = re.compile(r"[^a-zA-Z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


class InvalidFormat(ValueError):
    """Raised when a device identifier is not a 6-octet MAC address."""


def normalize_device_id(raw: str) -> str:
    """Return ``raw`` as a lowercase colon-separated MAC address.

    Accepts hex-only (``00180a272976``), colon, hyphen and dot separated
    forms (``00-18-0A-27-29-76``, ``0018.0a27.2976``).

    Raises:
        InvalidFormat: if exactly 12 hex characters do not remain once the
            separators and whitespace are removed.
    """
    if not isinstance(raw, str):
        raise InvalidFormat(f"Device id must be a string, got {type(raw).__name__}")

    cleaned = _SEPARATORS.sub("", raw).lower()
    if not _HEX12.match(cleaned):
        raise InvalidFormat(f"Invalid MAC address format: {raw!r}")

    return ":".join(cleaned[i:i + 2] for i in range(0, 12, 2))


def is_valid_device_id(raw: str) -> bool:
    try:
        normalize_device_id(raw)
    except InvalidFormat:
        return False
    return True


def normalize_label(raw: str) -> str:
    """Turn a venue name into a GHL tag.

    ``"Maggie's Restaurant & Bar"`` -> ``"Maggies_Restaurant_and_Bar"``
    """
    label = _APOSTROPHES.sub("", raw or "")
    label = label.replace("&", "and")
    label = _NON_WORD.sub("", label)
    return _WHITESPACE.sub("_", label.strip())


def parse_name(raw: str | None) -> tuple[str, str]:
    """Split a full name into (given, family).

    The first whitespace token is the given name; the rest, joined by single
    spaces, is the family name.
    """
    if not raw or not isinstance(raw, str):
        return "", ""
    parts = raw.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])
