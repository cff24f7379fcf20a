"""National ID (RUT) check digit, parsing, and spoken readings.

Pure functions, no I/O. A RUT is a 7-8 digit body plus a modulo-11
check character ('0'-'9' or 'K').
"""

import re

from src.shared.types import DelegateReason

_WEIGHTS = (2, 3, 4, 5, 6, 7)
MIN_BODY_LENGTH = 7
MAX_BODY_LENGTH = 8

_ID_PATTERN = re.compile(r"^([0-9]{7,8})([0-9K])$")

_DIGIT_WORDS = {
    "es": {
        "0": "cero",
        "1": "uno",
        "2": "dos",
        "3": "tres",
        "4": "cuatro",
        "5": "cinco",
        "6": "seis",
        "7": "siete",
        "8": "ocho",
        "9": "nueve",
        "K": "ka",
    },
    "en": {
        "0": "zero",
        "1": "one",
        "2": "two",
        "3": "three",
        "4": "four",
        "5": "five",
        "6": "six",
        "7": "seven",
        "8": "eight",
        "9": "nine",
        "K": "kay",
    },
}
_DASH_WORDS = {"es": "guión", "en": "dash"}
_UNKNOWN_WORDS = {"es": "desconocido", "en": "unknown"}


def _is_digits(text: str) -> bool:
    # str.isdigit also accepts superscripts and non-ASCII digits.
    return text.isascii() and text.isdigit()


def compute_check_digit(body: str) -> str:
    """Compute the modulo-11 check character for an ID body.

    Weights 2..7 cycle from the least significant digit. A result of
    11 maps to '0' and 10 maps to 'K'.

    Args:
        body: Digits of the ID body.

    Returns:
        Check character '0'-'9' or 'K'.

    Raises:
        ValueError: If body is empty or contains non-digits.
    """
    if not body or not _is_digits(body):
        raise ValueError(f"ID body must be digits: {body!r}")
    total = sum(
        int(digit) * _WEIGHTS[index % len(_WEIGHTS)]
        for index, digit in enumerate(reversed(body))
    )
    remainder = 11 - total % 11
    if remainder == 11:
        return "0"
    if remainder == 10:
        return "K"
    return str(remainder)


def validate(body: str, check_digit: str) -> bool:
    """Check that check_digit matches body (case-insensitive 'K').

    Args:
        body: Digits of the ID body.
        check_digit: Claimed check character.

    Returns:
        True if the check character is correct.
    """
    if not body or not _is_digits(body) or not check_digit:
        return False
    return compute_check_digit(body) == check_digit.strip().upper()


def split_id(raw: str) -> tuple[str, str] | None:
    """Split free-form ID text into (body, check_digit).

    Accepts "12.345.678-5", "123456785" and "12345678 k". A 'K' is only
    accepted as the final character.

    Args:
        raw: ID text as typed or transcribed.

    Returns:
        Tuple of body and upper-cased check character, or None.
    """
    if not raw:
        return None
    chars = [c for c in raw.upper() if _is_digits(c) or c == "K"]
    if not chars:
        return None
    compact = "".join(c for c in chars[:-1] if _is_digits(c)) + chars[-1]
    match = _ID_PATTERN.match(compact)
    if match is None:
        return None
    return match.group(1), match.group(2)


def canonical_id(body: str, check_digit: str) -> str:
    """Return the canonical "12345678-5" form."""
    return f"{body}-{check_digit.upper()}"


def masked_reading(body: str | None, check_digit: str | None, language: str = "es") -> str:
    """Spoken reading of the last three body digits and the check digit.

    Args:
        body: Digits of the ID body.
        check_digit: Check character.
        language: Two-letter language code ("es" or "en").

    Returns:
        E.g. "seis siete ocho guión cinco" for 12345678-5.
    """
    lang = language if language in _DIGIT_WORDS else "es"
    words = _DIGIT_WORDS[lang]
    if not body or not _is_digits(body):
        return _UNKNOWN_WORDS[lang]
    spoken = " ".join(words[d] for d in body[-3:])
    if not check_digit:
        return spoken
    dv = check_digit.strip().upper()
    return f"{spoken} {_DASH_WORDS[lang]} {words.get(dv, dv)}"


def format_id_local(text: str) -> dict:
    """Normalize and verify an ID locally.

    Used when the remote FORMAT_ID service cannot be reached. Returns
    the same shape the remote service does.

    Args:
        text: Caller transcript containing the ID.

    Returns:
        Dict with ok, and either id/body/check_digit or reason.
    """
    if not text or not text.strip():
        return {"ok": False, "reason": DelegateReason.EMPTY_INPUT.value}
    chars = [c for c in text.upper() if _is_digits(c) or c == "K"]
    if len(chars) < MIN_BODY_LENGTH + 1:
        return {"ok": False, "reason": DelegateReason.INSUFFICIENT_DIGITS.value}
    parsed = split_id(text)
    if parsed is None:
        return {"ok": False, "reason": DelegateReason.INVALID_BODY_LENGTH.value}
    body, check_digit = parsed
    if not validate(body, check_digit):
        return {
            "ok": False,
            "reason": DelegateReason.CHECK_DIGIT_MISMATCH.value,
            "body": body,
            "check_digit": check_digit,
        }
    return {
        "ok": True,
        "id": canonical_id(body, check_digit),
        "body": body,
        "check_digit": check_digit,
    }
