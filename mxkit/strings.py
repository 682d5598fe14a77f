"""Small string helpers: whitespace stripping, prefix matching, integer parsing."""

from __future__ import annotations

_SPACES = " \t\n\v\f\r"
_DIGITS = "0123456789"
_LOWER = "abcdefghijklmnopqrstuvwxyz"
_UPPER = _LOWER.upper()


def strip_left(text: str) -> str:
    """Drop leading ASCII whitespace."""
    return text.lstrip(_SPACES)


def starts_with(text: str, pattern: str) -> str | None:
    """Return what follows ``pattern`` in ``text``, or None if it does not start with it."""
    if not text.startswith(pattern):
        return None
    return text[len(pattern):]


def _digit_value(ch: str) -> int | None:
    if ch in _DIGITS:
        return ord(ch) - ord("0")
    if ch in _LOWER:
        return ord(ch) - ord("a") + 10
    if ch in _UPPER:
        return ord(ch) - ord("A") + 10
    return None


def to_long(text: str, base: int = 10) -> int:
    """Parse an integer with an optional sign and radix prefix.

    Base 0 accepts ``0x`` for hex and a leading ``0`` for octal; base 16
    also accepts ``0x``. Any character that is not a valid digit raises
    ValueError.
    """
    rest = strip_left(text)
    sign = 1
    if rest.startswith("-"):
        sign = -1
        rest = rest[1:]
    elif rest.startswith("+"):
        rest = rest[1:]

    if base in (0, 16) and rest[:2] in ("0x", "0X"):
        rest = rest[2:]
        base = 16
    if base == 0:
        base = 8 if rest.startswith("0") else 10

    value = 0
    for ch in rest:
        digit = _digit_value(ch)
        if digit is None or digit >= base:
            raise ValueError(f"invalid digit {ch!r} for base {base} in {text!r}")
        value = value * base + digit

    return sign * value