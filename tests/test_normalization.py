import pytest

from lead_intake.services.normalization import normalize_phone_e164


def test_plus_prefixed_is_unchanged():
    assert normalize_phone_e164("+15125550123") == "+15125550123"
    assert normalize_phone_e164("+44 20 7946 0958") == "+44 20 7946 0958"


@pytest.mark.parametrize(
    "raw",
    ["5125550123", "(512) 555-0123", "512-555-0123", "512.555.0123", "512 555 0123"],
)
def test_ten_digits_get_country_code(raw):
    assert normalize_phone_e164(raw) == "+15125550123"


def test_eleven_digits_with_leading_one():
    assert normalize_phone_e164("1 (512) 555-0123") == "+15125550123"
    assert normalize_phone_e164("15125550123") == "+15125550123"


def test_other_lengths_pass_through():
    assert normalize_phone_e164("25125550123") == "25125550123"
    assert normalize_phone_e164("555-0123 ext 44444") == "555-0123 ext 44444"
    assert normalize_phone_e164("12345") == "12345"


def test_none():
    assert normalize_phone_e164(None) is None
