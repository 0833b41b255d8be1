"""KEL103 number formatting and reply parsing utilities.

The instrument takes numeric arguments with three decimals followed by a unit
suffix (``12.500V``) and answers queries the same way. These helpers are pure
functions so they can be tested against literal strings.
"""

from __future__ import annotations

import string

from kel103.errors import DeviceProtocolError, ValueParsingError

VERIFY_TOLERANCE: float = 1e-9
"""Absolute tolerance used when comparing a read-back setting to the request."""

VOLT = "V"
WATT = "W"
AMP = "A"
HERTZ = "HZ"
PERCENT = "%"
SLEW = "A/uS"


def format_value(value: float, unit: str = "") -> str:
    """Format a number for use in a command.

    Args:
        value: The numeric value.
        unit: Unit suffix appended after the number.

    Returns:
        The value with exactly three decimals and the unit, e.g. ``"12.500V"``.
    """
    return f"{value:.3f}{unit}"


def format_bool(value: bool) -> str:
    """Format a boolean for use in a command.

    Returns:
        ``"1"`` for True, ``"0"`` for False.
    """
    return "1" if value else "0"


def strip_unit(text: str, unit: str) -> str:
    """Strip trailing unit characters and line terminators from a reply.

    Any combination of the unit's characters, CR, LF and whitespace is
    removed from the end, then surrounding whitespace is trimmed.

    Args:
        text: The raw reply (e.g. ``"12.500V\\r\\n"``).
        unit: The unit suffix the quantity is reported in.

    Returns:
        The bare numeric text (e.g. ``"12.500"``).
    """
    return text.rstrip(unit + string.whitespace).strip()


def parse_measurement(text: str, unit: str) -> float:
    """Parse a unit-suffixed reply into a float.

    Args:
        text: The raw reply.
        unit: The unit suffix to strip.

    Returns:
        The parsed value.

    Raises:
        ValueParsingError: If the residual text is not a number.
    """
    residual = strip_unit(text, unit)
    try:
        return float(residual)
    except ValueError:
        raise ValueParsingError(residual) from None


def values_match(expected: float, observed: float, tolerance: float = VERIFY_TOLERANCE) -> bool:
    """Return True if *observed* is within *tolerance* of *expected*."""
    return abs(observed - expected) <= tolerance


def parse_input_state(reply: str, command: str = ":INP?") -> bool:
    """Parse an input state reply.

    ``OFF`` is checked before ``ON``. The match is a case-sensitive substring
    match.

    Args:
        reply: The raw reply text.
        command: The query that produced the reply, for error context.

    Returns:
        True if the input is on, False if it is off.

    Raises:
        DeviceProtocolError: If the reply contains neither token.
    """
    if "OFF" in reply:
        return False
    if "ON" in reply:
        return True
    raise DeviceProtocolError(command, reply)
