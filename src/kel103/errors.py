"""Exception types for the KEL103 driver.

All driver exceptions inherit from :class:`Kel103Error`, allowing callers to
catch every failure of an instrument operation with a single except clause.

Exception hierarchy:
    Kel103Error (base)
    +-- TransportError: Open/write/flush/read failures, including timeouts
    +-- DecodingError: Reply bytes that are not valid UTF-8
    +-- ValueParsingError: Numeric reply text that cannot be parsed
    +-- ValueMismatchError: Read-back value differs from the value written
    +-- DeviceProtocolError: Reply is missing an expected token
    +-- DeviceModelError: Identification reply lacks the expected model
"""

from __future__ import annotations


class Kel103Error(Exception):
    """Base exception for all KEL103 driver errors."""


class TransportError(Kel103Error):
    """Raised when the serial transport fails.

    Covers failures to open the port, write or flush errors, and reads that
    time out before a complete reply line arrives.
    """


class DecodingError(Kel103Error):
    """Raised when a reply line is not valid UTF-8.

    Attributes:
        raw: The undecodable reply bytes.
    """

    def __init__(self, raw: bytes) -> None:
        """Initialize the decoding error.

        Args:
            raw: The reply bytes that failed to decode.
        """
        self.raw = raw
        super().__init__(f"Received invalid UTF-8 data from device: {raw!r}")


class ValueParsingError(Kel103Error):
    """Raised when a reply cannot be parsed as a number.

    Attributes:
        text: The residual text after unit stripping.
    """

    def __init__(self, text: str) -> None:
        """Initialize the parsing error.

        Args:
            text: The offending text.
        """
        self.text = text
        super().__init__(f"Failed to parse float value: {text!r}")


class ValueMismatchError(Kel103Error):
    """Raised when a setting read back from the device differs from the request.

    The write itself reached the instrument; only the verification failed.
    The setting is not rolled back.

    Attributes:
        quantity: Name of the setting (e.g. ``"voltage"``, ``"output"``).
        expected: The value that was written.
        actual: The value read back from the device.

    Example:
        >>> try:
        ...     load.set_volt(12.0)
        ... except ValueMismatchError as e:
        ...     print(f"wanted {e.expected}, device has {e.actual}")
    """

    def __init__(self, quantity: str, expected: float | bool, actual: float | bool) -> None:
        """Initialize the mismatch error.

        Args:
            quantity: Name of the setting that was verified.
            expected: Requested value.
            actual: Observed value.
        """
        self.quantity = quantity
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{quantity.capitalize()} set incorrectly on the device. "
            f"Expected {expected}, got {actual}"
        )


class DeviceProtocolError(Kel103Error):
    """Raised when a reply does not contain any of the expected tokens.

    Attributes:
        command: The command that produced the reply.
        reply: The raw reply text.
    """

    def __init__(self, command: str, reply: str) -> None:
        self.command = command
        self.reply = reply
        super().__init__(f"Unexpected response from {command}: {reply!r}")


class DeviceModelError(Kel103Error):
    """Raised when the connected device does not identify as the expected model.

    Attributes:
        expected: The model token that was required.
        reply: The identification string the device returned.
    """

    def __init__(self, expected: str, reply: str) -> None:
        self.expected = expected
        self.reply = reply
        super().__init__(f"Device is not a {expected}: {reply!r}")
