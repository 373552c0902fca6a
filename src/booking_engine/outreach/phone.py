"""
Phone number normalization for outreach lookups and outbound delivery.
"""

import re

from booking_engine.shared.exceptions import InvalidContactError

# E.164 phone number pattern
E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")

# Brazilian mobile without country code: two-digit area code plus nine digits.
_BR_NATIONAL = re.compile(r"^[1-9]\d{10}$")

BRAZIL_COUNTRY_CODE = "55"


def normalize_phone_number(phone: str | None) -> str | None:
    """Normalize phone number to E.164 format.

    Args:
        phone: Raw phone number string, optionally prefixed with ``whatsapp:``.

    Returns:
        Normalized phone number or None if invalid.
    """
    if not phone:
        return None

    value = phone.strip()
    if value.lower().startswith("whatsapp:"):
        value = value[len("whatsapp:"):]

    cleaned = re.sub(r"[^\d+]", "", value)
    if not cleaned:
        return None

    if cleaned.startswith("00"):
        cleaned = "+" + cleaned[2:]

    if not cleaned.startswith("+"):
        if cleaned.startswith("0"):
            cleaned = cleaned[1:]
        if _BR_NATIONAL.match(cleaned):
            cleaned = BRAZIL_COUNTRY_CODE + cleaned
        cleaned = "+" + cleaned

    if E164_PATTERN.match(cleaned):
        return cleaned
    return None


def require_phone_number(phone: str | None) -> str:
    """Like ``normalize_phone_number`` but raises ``InvalidContactError``."""
    normalized = normalize_phone_number(phone)
    if normalized is None:
        raise InvalidContactError(f"Invalid phone number: {phone!r}")
    return normalized
