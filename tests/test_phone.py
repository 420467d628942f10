"""Tests for Ivorian phone number utilities."""

import random

import pytest

from monepiceriz.errors import InvalidPhoneNumberError
from monepiceriz.phone import (
    PHONE_ERROR_MESSAGES,
    MobileOperator,
    PhoneFormat,
    are_phone_numbers_equal,
    assert_ivorian_phone,
    clean_phone_number,
    format_phone_for_display,
    generate_test_phone_number,
    get_operator_info,
    identify_mobile_operator,
    is_valid_ivorian_phone,
    parse_phone,
    to_international_format,
    to_national_format,
    validate_ivorian_phone,
)

VALID_INPUTS = [
    "+2250143215478",
    "+225 07 08 09 10 11",
    "2250512345678",
    "0143215478",
    "01-43-21-54-78",
    "1234567890",
    "12345678",
    "+22512345678",
]


class TestCleanAndParse:
    def test_clean_removes_non_digits(self):
        assert clean_phone_number("+225 (01) 43-21.54 78") == "2250143215478"
        assert clean_phone_number("abc") == ""

    def test_formats(self):
        assert parse_phone("+2250143215478").format == PhoneFormat.INTERNATIONAL
        assert parse_phone("+22512345678").format == PhoneFormat.INTERNATIONAL
        assert parse_phone("0143215478").format == PhoneFormat.NATIONAL
        assert parse_phone("1234567890").format == PhoneFormat.LOCAL
        assert parse_phone("12345678").format == PhoneFormat.LEGACY

    def test_country_code_only_at_international_lengths(self):
        # 10 digits starting with 225 is a local number, not a truncated international one
        parsed = parse_phone("2250143215")
        assert parsed.format == PhoneFormat.LOCAL
        assert parsed.body == "2250143215"

    def test_subscriber_is_last_eight_digits(self):
        assert parse_phone("+2250143215478").subscriber == "43215478"
        assert parse_phone("12345678").subscriber == "12345678"

    @pytest.mark.parametrize("phone", ["", None, "123", "abc", "01234", "012345678901", 143215478])
    def test_invalid(self, phone):
        assert parse_phone(phone) is None


class TestIsValid:
    def test_examples(self):
        assert is_valid_ivorian_phone("+2250143215478") is True
        assert is_valid_ivorian_phone("123") is False
        assert is_valid_ivorian_phone("12345678") is True

    def test_all_formats_accepted(self):
        for phone in VALID_INPUTS:
            assert is_valid_ivorian_phone(phone), phone

    def test_national_needs_ten_digits(self):
        assert is_valid_ivorian_phone("014321547") is False
        assert is_valid_ivorian_phone("01432154789") is False


class TestConversions:
    def test_to_international(self):
        assert to_international_format("0143215478") == "+2250143215478"
        assert to_international_format("01 43 21 54 78") == "+2250143215478"
        assert to_international_format("+2250143215478") == "+2250143215478"
        assert to_international_format("12345678") == "+22512345678"

    def test_to_national(self):
        assert to_national_format("+2250143215478") == "0143215478"
        assert to_national_format("0143215478") == "0143215478"
        assert to_national_format("12345678") == "012345678"

    def test_legacy_national_form_is_display_only(self):
        # "0" + 8 digits is not itself a parseable number
        national = to_national_format("12345678")
        assert national == "012345678"
        assert is_valid_ivorian_phone(national) is False
        assert to_international_format(national) == national

        # The international form of a legacy number does convert back
        assert to_international_format("12345678") == "+22512345678"
        assert parse_phone("+22512345678").subscriber == "12345678"

    def test_invalid_input_returned_unchanged(self):
        assert to_international_format("123") == "123"
        assert to_national_format("not a phone") == "not a phone"

    def test_national_round_trip_is_canonical(self):
        for phone in VALID_INPUTS:
            assert to_national_format(to_international_format(phone)) == to_national_format(phone)

    def test_same_number_in_different_formats(self):
        forms = ["+2250143215478", "2250143215478", "0143215478", "01 43 21 54 78"]
        nationals = {to_national_format(to_international_format(f)) for f in forms}
        assert nationals == {"0143215478"}

    def test_different_subscribers_stay_different(self):
        assert to_national_format(to_international_format("0143215478")) != to_national_format(
            to_international_format("1234567890")
        )


class TestValidate:
    def test_valid_international(self):
        result = validate_ivorian_phone("+2250143215478")
        assert result.is_valid
        assert result.format == PhoneFormat.INTERNATIONAL
        assert result.operator == MobileOperator.MOOV
        assert result.cleaned == "2250143215478"
        assert result.formatted.international == "+2250143215478"
        assert result.formatted.national == "0143215478"
        assert result.formatted.local == "43215478"
        assert result.formatted.display == "+225 01 43 21 54 78"
        assert result.error is None

    def test_valid_national_display(self):
        result = validate_ivorian_phone("0707080910")
        assert result.formatted.display == "07 07 08 09 10"
        assert result.operator == MobileOperator.ORANGE

    @pytest.mark.parametrize(
        "phone,message_key",
        [
            ("", "REQUIRED"),
            (None, "REQUIRED"),
            ("abc", "NO_DIGITS"),
            ("01234", "INVALID_NATIONAL"),
            ("225012345678", "INVALID_INTERNATIONAL"),
            ("123", "INVALID_FORMAT"),
        ],
    )
    def test_invalid_messages(self, phone, message_key):
        result = validate_ivorian_phone(phone)
        assert result.is_valid is False
        assert result.error == PHONE_ERROR_MESSAGES[message_key]
        assert result.formatted is None

    def test_to_dict(self):
        data = validate_ivorian_phone("0543215478").to_dict()
        assert data["is_valid"] is True
        assert data["format"] == "national"
        assert data["operator"] == "MTN"
        assert data["formatted"]["international"] == "+2250543215478"

    def test_format_for_display(self):
        assert format_phone_for_display("+2250143215478") == "+225 01 43 21 54 78"
        assert format_phone_for_display("12345678") == "12 34 56 78"
        assert format_phone_for_display("123") == "123"


class TestOperators:
    @pytest.mark.parametrize(
        "phone,operator",
        [
            ("0707070707", MobileOperator.ORANGE),
            ("0812345678", MobileOperator.ORANGE),
            ("+2250912345678", MobileOperator.ORANGE),
            ("0512345678", MobileOperator.MTN),
            ("0612345678", MobileOperator.MTN),
            ("0143215478", MobileOperator.MOOV),
            ("0312345678", MobileOperator.MOOV),
            # A leading 0 on 8 digits is neither legacy nor national
            ("07123456", MobileOperator.UNKNOWN),
            ("71234567", MobileOperator.UNKNOWN),
            ("0412345678", MobileOperator.UNKNOWN),
            ("123", MobileOperator.UNKNOWN),
        ],
    )
    def test_identify(self, phone, operator):
        assert identify_mobile_operator(phone) == operator

    def test_operator_info(self):
        assert get_operator_info(MobileOperator.ORANGE) == {
            "name": "Orange Money",
            "short_code": "OM",
        }
        assert get_operator_info(MobileOperator.UNKNOWN)["short_code"] == "TEL"


class TestEquality:
    def test_same_subscriber_across_formats(self):
        assert are_phone_numbers_equal("+2250143215478", "01 43 21 54 78")
        assert are_phone_numbers_equal("0143215478", "43215478")

    def test_different_numbers(self):
        assert not are_phone_numbers_equal("0143215478", "0143215479")

    def test_invalid_numbers_never_equal(self):
        assert not are_phone_numbers_equal("123", "123")
        assert not are_phone_numbers_equal("0143215478", "")


class TestAssertAndGenerate:
    def test_assert_valid(self):
        assert assert_ivorian_phone("0143215478").national == "0143215478"

    def test_assert_invalid_raises(self):
        with pytest.raises(InvalidPhoneNumberError) as exc_info:
            assert_ivorian_phone("123")
        assert exc_info.value.phone == "123"

    @pytest.mark.parametrize("operator", [MobileOperator.ORANGE, MobileOperator.MTN, MobileOperator.MOOV])
    def test_generate_for_operator(self, operator):
        rng = random.Random(42)
        for _ in range(20):
            phone = generate_test_phone_number(operator, rng)
            assert len(phone) == 10
            assert is_valid_ivorian_phone(phone)
            assert identify_mobile_operator(phone) == operator

    def test_generate_any_operator(self):
        phone = generate_test_phone_number(rng=random.Random(1))
        assert identify_mobile_operator(phone) != MobileOperator.UNKNOWN
