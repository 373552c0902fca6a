"""Tests for phone number normalization."""

import pytest

from booking_engine.outreach.phone import normalize_phone_number, require_phone_number
from booking_engine.shared.exceptions import InvalidContactError


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("+5511987654321", "+5511987654321"),
        ("11987654321", "+5511987654321"),
        ("(11) 98765-4321", "+5511987654321"),
        ("011987654321", "+5511987654321"),
        ("whatsapp:+5511987654321", "+5511987654321"),
        ("005511987654321", "+5511987654321"),
        ("+14155551234", "+14155551234"),
        ("5511987654321", "+5511987654321"),
    ],
)
def test_normalize_phone_number(raw: str, expected: str) -> None:
    assert normalize_phone_number(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "abc", "+0123", "+1234567890123456"])
def test_invalid_numbers(raw: str | None) -> None:
    assert normalize_phone_number(raw) is None


def test_require_phone_number_raises() -> None:
    with pytest.raises(InvalidContactError):
        require_phone_number("not a phone")
    assert require_phone_number("11 98765 4321") == "+5511987654321"
