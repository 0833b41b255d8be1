"""Serial transport for the KEL103 line protocol.

This module defines the :class:`LoadTransport` protocol, which specifies the
byte-level interface the driver needs, and :class:`SerialTransport`, the
pyserial-backed implementation used for real instruments.

Implementations include:
- :class:`kel103.SerialTransport`: pyserial port (``/dev/ttyACM0``, ``COM3``)
- :class:`kel103.VisaTransport`: PyVISA ``ASRL`` resource
- :class:`kel103.Kel103Emulator`: in-process emulator for testing
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Protocol

import serial

from kel103.errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_BAUD_RATE = 9600
DEFAULT_TIMEOUT = 1.0


class LoadTransport(Protocol):
    """Protocol for the byte-duplex channel to the instrument.

    The writing half (``write`` and ``flush``) and the line-reading half
    (``readline``) are used independently by the driver. Callers are
    responsible for opening the transport before passing it to
    :class:`kel103.Kel103`.

    Example:
        >>> class MyTransport:
        ...     def write(self, data: bytes) -> None: ...
        ...     def flush(self) -> None: ...
        ...     def readline(self) -> bytes:
        ...         return b"KEL103,V1.0\\n"
        ...     def close(self) -> None: ...
        ...
        >>> transport: LoadTransport = MyTransport()
    """

    def write(self, data: bytes) -> None:
        """Write raw bytes to the instrument."""
        ...

    def flush(self) -> None:
        """Block until all written bytes have been transmitted."""
        ...

    def readline(self) -> bytes:
        """Read bytes up to and including the next newline.

        Raises:
            TransportError: If no complete line arrives before the timeout.
        """
        ...

    def close(self) -> None:
        """Close the transport and release resources."""
        ...


class SerialTransport:
    """Transport backed by a pyserial port.

    Attributes:
        port: The serial device name.
        baud_rate: Bit rate in baud.
        timeout: Read timeout in seconds.
        is_open: Whether the port is currently open.

    Args:
        port: Serial device, a path on Linux (``/dev/ttyACM0``) or a port
            name on Windows (``COM3``).
        baud_rate: Bit rate. Defaults to 9600.
        timeout: Read timeout in seconds applied to every reply. Defaults to 1.

    Example:
        >>> with SerialTransport("/dev/ttyACM0", 115200) as transport:
        ...     transport.write(b"*IDN?\\n")
        ...     transport.flush()
        ...     print(transport.readline())
    """

    def __init__(
        self,
        port: str,
        baud_rate: int = DEFAULT_BAUD_RATE,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._port = port
        self._baud_rate = baud_rate
        self._timeout = timeout
        self._serial: serial.Serial | None = None

    # -- Properties ----------------------------------------------------------

    @property
    def port(self) -> str:
        """The serial device name."""
        return self._port

    @property
    def baud_rate(self) -> int:
        """The configured bit rate."""
        return self._baud_rate

    @property
    def timeout(self) -> float:
        """The read timeout in seconds."""
        return self._timeout

    @property
    def is_open(self) -> bool:
        """Return True if the port is currently open."""
        return self._serial is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the serial port.

        Raises:
            TransportError: If the port cannot be opened.
        """
        if self._serial is not None:
            return
        try:
            self._serial = serial.Serial(
                self._port,
                baudrate=self._baud_rate,
                timeout=self._timeout,
            )
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"Failed to open serial port {self._port!r}: {exc}") from exc
        logger.debug("Opened %s at %d baud", self._port, self._baud_rate)

    def close(self) -> None:
        """Close the serial port.

        Safe to call multiple times.
        """
        if self._serial is None:
            return
        try:
            self._serial.close()
        finally:
            self._serial = None
            logger.debug("Closed %s", self._port)

    def __enter__(self) -> SerialTransport:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Transport interface -------------------------------------------------

    def write(self, data: bytes) -> None:
        """Write raw bytes to the port.

        Raises:
            TransportError: If the port is not open or the write fails.
        """
        port = self._require_open()
        logger.debug("%s <- %r", self._port, data)
        try:
            port.write(data)
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"Write to {self._port!r} failed: {exc}") from exc

    def flush(self) -> None:
        """Wait until all written data has been transmitted.

        Raises:
            TransportError: If the port is not open or the flush fails.
        """
        port = self._require_open()
        try:
            port.flush()
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"Flush of {self._port!r} failed: {exc}") from exc

    def readline(self) -> bytes:
        """Read one newline-terminated line.

        Returns:
            The line including its trailing ``\\n``.

        Raises:
            TransportError: If the port is not open, the read fails, or the
                timeout expires before a newline is received.
        """
        port = self._require_open()
        try:
            line: bytes = port.readline()
        except (serial.SerialException, OSError) as exc:
            raise TransportError(f"Read from {self._port!r} failed: {exc}") from exc
        logger.debug("%s -> %r", self._port, line)
        if not line.endswith(b"\n"):
            raise TransportError(
                f"Timed out after {self._timeout}s waiting for reply from {self._port!r}"
                + (f" (partial data: {line!r})" if line else "")
            )
        return line

    # -- Private helpers -----------------------------------------------------

    def _require_open(self) -> serial.Serial:
        if self._serial is None:
            raise TransportError(f"Serial port {self._port!r} is not open")
        return self._serial
