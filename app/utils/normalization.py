"""Normalization helpers for scraped and extracted property data.

Pure Python, no AI. Used by:
  - schemas/enrichment.py (validation of extracted floor plans/units)
  - services/property_enrichment.py (phone/email formatting, verifications)
"""

import re
from typing import Any

# ── Phone ────────────────────────────────────────────────────────────

# North American Numbering Plan: 10-digit numbers, optional leading 1
_NANP_PATTERN = re.compile(r"^1?(\d{10})$")
_EXTENSION_RE = re.compile(r"(?i)\s*(?:ext\.?|x|extension)\s*:?\s*\d+\s*$")


def phone_digits(raw: str | None) -> str:
    """Digits of a phone number without extension or leading country 1."""
    if not raw:
        return ""
    s = _EXTENSION_RE.sub("", str(raw).strip())
    digits = re.sub(r"\D", "", s)
    m = _NANP_PATTERN.match(digits)
    return m.group(1) if m else digits


def format_phone(raw: str | None) -> str | None:
    """Format a US phone number as (XXX) XXX-XXXX.

    Examples:
        "210.555.0100"     → "(210) 555-0100"
        "+1 210 555 0100"  → "(210) 555-0100"
        "555-0100"         → "555-0100" (too short to format, kept as given)
        ""                 → None
    """
    if not raw or not str(raw).strip():
        return None
    digits = phone_digits(raw)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return str(raw).strip()


# ── Email ────────────────────────────────────────────────────────────

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def normalize_email(raw: str | None) -> str | None:
    """Lowercase and validate an email address. Returns None if invalid."""
    if not raw:
        return None
    s = str(raw).strip().lower()
    if s.startswith("mailto:"):
        s = s[len("mailto:"):]
    return s if EMAIL_RE.match(s) else None


# ── Rents, counts, sizes ─────────────────────────────────────────────


def normalize_rent(raw: Any) -> float | None:
    """Parse a rent string to float. Ranges take the lower bound.

    Examples:
        "$1,250"         → 1250.0
        "$1,200 - 1,400" → 1200.0
        "1.4k"           → 1400.0
        "Call for pricing" → None
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw) if raw > 0 else None

    s = str(raw).strip().replace("$", "").replace(",", "")
    s = re.sub(r"(?i)\s*(/\s*mo(nth)?|per\s+month|mo)\.?\s*$", "", s).strip()
    if not s:
        return None

    if "-" in s and not s.startswith("-"):
        s = s.split("-")[0].strip()

    m = re.match(r"^([\d.]+)\s*[kK]$", s)
    if m:
        return float(m.group(1)) * 1_000

    try:
        val = float(s)
    except ValueError:
        return None
    return val if val > 0 else None


def normalize_count(raw: Any) -> int | None:
    """Parse an integer-ish value ("750 sq ft", "3", 2.0). None if absent."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return int(raw)
    m = re.search(r"\d[\d,]*", str(raw))
    if not m:
        return None
    return int(m.group(0).replace(",", ""))


def normalize_rooms(raw: Any) -> float | None:
    """Parse bed/bath counts. "Studio" is zero bedrooms."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    s = str(raw).strip().lower()
    if s.startswith("studio"):
        return 0.0
    m = re.search(r"\d+(\.\d+)?", s)
    return float(m.group(0)) if m else None


# ── Extracted values ─────────────────────────────────────────────────

_NULL_STRINGS = {"null", "none", "n/a", "unknown"}


def clean_text(raw: Any) -> str | None:
    """Stringify an extracted value; blanks and literal "null" are absent."""
    if raw is None:
        return None
    text = " ".join(str(raw).split())
    if not text or text.lower() in _NULL_STRINGS:
        return None
    return text


def clamp_confidence(raw: Any, default: float) -> float:
    """Coerce a model-reported confidence into (0, 1]; default when unusable."""
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if value <= 0:
        return default
    return min(value, 1.0)
