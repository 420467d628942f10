"""
Phone number utilities for Côte d'Ivoire.

Accepted input formats (any separators are ignored):

- International: +225 followed by a 10-digit number (or a legacy 8-digit one)
- National: 0XXXXXXXXX (10 digits)
- Local: XXXXXXXXXX (10 digits, no leading zero)
- Legacy: XXXXXXXX (8 digits)

All four carry the same 8-digit subscriber number, which is what equality
compares. Conversions never raise: on input that cannot be parsed they return
the input unchanged, and validation returns False or a failed result.
"""

import random
import re
from dataclasses import asdict, dataclass
from enum import Enum

from .errors import InvalidPhoneNumberError

COUNTRY_CODE = "225"


class PhoneFormat(str, Enum):
    INTERNATIONAL = "international"
    NATIONAL = "national"
    LOCAL = "local"
    LEGACY = "legacy"


class MobileOperator(str, Enum):
    ORANGE = "ORANGE"
    MTN = "MTN"
    MOOV = "MOOV"
    UNKNOWN = "UNKNOWN"


MOBILE_PREFIXES: dict[MobileOperator, tuple[str, ...]] = {
    MobileOperator.ORANGE: ("07", "08", "09"),
    MobileOperator.MTN: ("05", "06"),
    MobileOperator.MOOV: ("01", "02", "03"),
}

OPERATOR_INFO: dict[MobileOperator, dict[str, str]] = {
    MobileOperator.ORANGE: {"name": "Orange Money", "short_code": "OM"},
    MobileOperator.MTN: {"name": "MTN Mobile Money", "short_code": "MOMO"},
    MobileOperator.MOOV: {"name": "Moov Money", "short_code": "MOOV"},
    MobileOperator.UNKNOWN: {"name": "Opérateur Inconnu", "short_code": "TEL"},
}

PHONE_ERROR_MESSAGES = {
    "REQUIRED": "Le numéro de téléphone est requis",
    "NO_DIGITS": "Le numéro de téléphone ne contient aucun chiffre",
    "INVALID_NATIONAL": "Le format national doit contenir 10 chiffres (0XXXXXXXXX)",
    "INVALID_INTERNATIONAL": (
        "Le format international doit contenir 11 ou 13 chiffres (+225XXXXXXXXXX)"
    ),
    "INVALID_FORMAT": (
        "Format de numéro non valide. Utilisez +225XXXXXXXXXX, 0XXXXXXXXX, ou XXXXXXXXXX"
    ),
}

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class ParsedPhone:
    """A phone number that passed validation.

    ``body`` is what follows the country code in international form: the
    10-digit number as entered, or the 8 digits of a legacy number.
    """

    format: PhoneFormat
    cleaned: str
    body: str

    @property
    def subscriber(self) -> str:
        return self.body[-8:]

    @property
    def international(self) -> str:
        return f"+{COUNTRY_CODE}{self.body}"

    @property
    def national(self) -> str:
        # Legacy numbers get the historical 9-digit form, which does not parse back
        if len(self.body) == 8:
            return f"0{self.body}"
        if self.body.startswith("0"):
            return self.body
        return f"0{self.body[-9:]}"

    @property
    def operator_prefix(self) -> str:
        if len(self.body) == 8:
            return self.body[:2]
        return self.national[:2]


@dataclass(frozen=True)
class FormattedPhone:
    international: str
    national: str
    local: str
    display: str


@dataclass(frozen=True)
class PhoneValidationResult:
    """Outcome of ``validate_ivorian_phone``. Check ``is_valid`` before use."""

    is_valid: bool
    format: PhoneFormat | None = None
    operator: MobileOperator | None = None
    cleaned: str | None = None
    formatted: FormattedPhone | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "format": self.format.value if self.format else None,
            "operator": self.operator.value if self.operator else None,
            "cleaned": self.cleaned,
            "formatted": asdict(self.formatted) if self.formatted else None,
            "error": self.error,
        }


def clean_phone_number(phone: str) -> str:
    """Remove every non-digit character."""
    return _NON_DIGITS.sub("", phone)


def parse_phone(phone: object) -> ParsedPhone | None:
    """
    Classify a phone number by digit count and leading digits.

    The country code is only recognized when the digit count is 11 or 13, so
    10-digit local and 8-digit legacy numbers may themselves begin with 225.

    Returns:
        The parsed number, or None if the input is not a valid Ivorian number.
    """
    if not phone or not isinstance(phone, str):
        return None

    cleaned = clean_phone_number(phone)
    length = len(cleaned)

    if cleaned.startswith(COUNTRY_CODE) and length in (11, 13):
        return ParsedPhone(PhoneFormat.INTERNATIONAL, cleaned, cleaned[3:])
    if cleaned.startswith("0"):
        if length == 10:
            return ParsedPhone(PhoneFormat.NATIONAL, cleaned, cleaned)
        return None
    if length == 10:
        return ParsedPhone(PhoneFormat.LOCAL, cleaned, cleaned)
    if length == 8:
        return ParsedPhone(PhoneFormat.LEGACY, cleaned, cleaned)
    return None


def is_valid_ivorian_phone(phone: object) -> bool:
    """
    Check whether a phone number is a valid Côte d'Ivoire number.

    >>> is_valid_ivorian_phone("+2250143215478")
    True
    >>> is_valid_ivorian_phone("12345678")
    True
    >>> is_valid_ivorian_phone("123")
    False
    """
    return parse_phone(phone) is not None


def _group_pairs(digits: str) -> str:
    return " ".join(digits[i:i + 2] for i in range(0, len(digits), 2))


def _invalid_reason(phone: object) -> str:
    if not phone or not isinstance(phone, str):
        return PHONE_ERROR_MESSAGES["REQUIRED"]
    cleaned = clean_phone_number(phone)
    if not cleaned:
        return PHONE_ERROR_MESSAGES["NO_DIGITS"]
    if cleaned.startswith("0"):
        return PHONE_ERROR_MESSAGES["INVALID_NATIONAL"]
    if cleaned.startswith(COUNTRY_CODE) and len(cleaned) > 10:
        return PHONE_ERROR_MESSAGES["INVALID_INTERNATIONAL"]
    return PHONE_ERROR_MESSAGES["INVALID_FORMAT"]


def validate_ivorian_phone(phone: object) -> PhoneValidationResult:
    """
    Validate a phone number and describe it.

    Invalid numbers produce a result with ``is_valid=False`` and a French
    ``error`` message; nothing is raised.
    """
    parsed = parse_phone(phone)
    if parsed is None:
        return PhoneValidationResult(is_valid=False, error=_invalid_reason(phone))

    if parsed.format == PhoneFormat.INTERNATIONAL:
        display = f"+{COUNTRY_CODE} {_group_pairs(parsed.body)}"
    elif parsed.format == PhoneFormat.NATIONAL:
        display = _group_pairs(parsed.national)
    else:
        display = _group_pairs(parsed.body)

    return PhoneValidationResult(
        is_valid=True,
        format=parsed.format,
        operator=_operator_for_prefix(parsed.operator_prefix),
        cleaned=parsed.cleaned,
        formatted=FormattedPhone(
            international=parsed.international,
            national=parsed.national,
            local=parsed.subscriber,
            display=display,
        ),
    )


def to_international_format(phone: str) -> str:
    """
    Convert to international format.

    >>> to_international_format("01 43 21 54 78")
    '+2250143215478'
    """
    parsed = parse_phone(phone)
    return parsed.international if parsed else phone


def to_national_format(phone: str) -> str:
    """
    Convert to national format.

    >>> to_national_format("+2250143215478")
    '0143215478'
    """
    parsed = parse_phone(phone)
    return parsed.national if parsed else phone


def format_phone_for_display(phone: str) -> str:
    """Group digits in pairs for display; unchanged if the number is invalid."""
    result = validate_ivorian_phone(phone)
    if result.is_valid and result.formatted:
        return result.formatted.display
    return phone


def _operator_for_prefix(prefix: str) -> MobileOperator:
    for operator, prefixes in MOBILE_PREFIXES.items():
        if prefix in prefixes:
            return operator
    return MobileOperator.UNKNOWN


def identify_mobile_operator(phone: str) -> MobileOperator:
    """
    Identify the mobile operator from the number's two-digit prefix.

    Unrecognized prefixes and invalid numbers give ``MobileOperator.UNKNOWN``.
    """
    parsed = parse_phone(phone)
    if parsed is None:
        return MobileOperator.UNKNOWN
    return _operator_for_prefix(parsed.operator_prefix)


def get_operator_info(operator: MobileOperator) -> dict[str, str]:
    return OPERATOR_INFO[operator]


def are_phone_numbers_equal(phone1: str, phone2: str) -> bool:
    """True iff both numbers are valid and share the same subscriber number."""
    parsed1 = parse_phone(phone1)
    parsed2 = parse_phone(phone2)
    if parsed1 is None or parsed2 is None:
        return False
    return parsed1.subscriber == parsed2.subscriber


def assert_ivorian_phone(phone: str) -> ParsedPhone:
    """Parse a phone number or raise InvalidPhoneNumberError."""
    parsed = parse_phone(phone)
    if parsed is None:
        raise InvalidPhoneNumberError(str(phone), _invalid_reason(phone))
    return parsed


def generate_test_phone_number(
    operator: MobileOperator | None = None, rng: random.Random | None = None
) -> str:
    """Generate a valid national number, using the operator's prefixes when given."""
    rng = rng or random.Random()
    if operator in MOBILE_PREFIXES:
        prefixes = MOBILE_PREFIXES[operator]
    else:
        prefixes = tuple(p for group in MOBILE_PREFIXES.values() for p in group)
    prefix = rng.choice(prefixes)
    suffix = f"{rng.randrange(100_000_000):08d}"
    return f"{prefix}{suffix}"
