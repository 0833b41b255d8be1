"""PyVISA transport for the KEL103.

Some benches route every instrument through VISA. This module provides a
:class:`LoadTransport` implementation on top of a PyVISA serial (``ASRL``)
resource. The pyvisa library is imported lazily so the rest of the package
works without VISA installed.

Supported resource strings:
- ``ASRL/dev/ttyACM0::INSTR`` (pyvisa-py on Linux)
- ``ASRL3::INSTR`` (NI-VISA, COM3)
"""

from __future__ import annotations

import logging
from typing import Any

from kel103.errors import TransportError
from kel103.transport import DEFAULT_BAUD_RATE

logger = logging.getLogger(__name__)


class VisaTransport:
    """KEL103 transport backed by a PyVISA serial resource.

    Line termination is handled by the driver, so the resource is opened
    with an empty write termination and ``\\n`` as the read termination
    character.

    Attributes:
        resource_string: The VISA resource address string.
        is_open: Whether the resource is currently open.

    Args:
        resource_string: VISA resource address.
        baud_rate: Serial bit rate.
        timeout_ms: Read timeout in milliseconds. Defaults to 1000.

    Example:
        >>> transport = VisaTransport("ASRL/dev/ttyACM0::INSTR", 115200)
        >>> transport.open()
        >>> transport.write(b"*IDN?\\n")
        >>> print(transport.readline())
        >>> transport.close()
    """

    def __init__(
        self,
        resource_string: str,
        baud_rate: int = DEFAULT_BAUD_RATE,
        *,
        timeout_ms: int = 1000,
    ) -> None:
        self._resource_string = resource_string
        self._baud_rate = baud_rate
        self._timeout_ms = timeout_ms
        self._rm: Any = None
        self._resource: Any = None

    # -- Properties ----------------------------------------------------------

    @property
    def resource_string(self) -> str:
        """The VISA resource string."""
        return self._resource_string

    @property
    def is_open(self) -> bool:
        """Return True if the resource is currently open."""
        return self._resource is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the VISA resource.

        Lazily imports ``pyvisa`` and creates a :class:`ResourceManager`.

        Raises:
            TransportError: If ``pyvisa`` is not installed or the resource
                cannot be opened.
        """
        if self._resource is not None:
            return

        try:
            import pyvisa  # type: ignore[import-not-found]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise TransportError(
                "pyvisa library is not installed. Install with: pip install pyvisa"
            ) from exc

        try:
            self._rm = pyvisa.ResourceManager()
            self._resource = self._rm.open_resource(
                self._resource_string,
                baud_rate=self._baud_rate,
                read_termination="\n",
                write_termination="",
            )
            self._resource.timeout = self._timeout_ms
        except Exception as exc:
            self._resource = None
            if self._rm is not None:
                try:
                    self._rm.close()
                except Exception:  # pylint: disable=broad-except
                    pass
            self._rm = None
            raise TransportError(
                f"Failed to open VISA resource {self._resource_string!r}: {exc}"
            ) from exc
        logger.debug("Opened VISA resource %s", self._resource_string)

    def close(self) -> None:
        """Close the VISA resource and resource manager.

        Safe to call multiple times.
        """
        if self._resource is not None:
            try:
                self._resource.close()
            except Exception:  # pylint: disable=broad-except
                pass
            self._resource = None
        if self._rm is not None:
            try:
                self._rm.close()
            except Exception:  # pylint: disable=broad-except
                pass
            self._rm = None

    # -- Transport interface -------------------------------------------------

    def write(self, data: bytes) -> None:
        """Write raw bytes to the resource.

        Raises:
            TransportError: If the resource is not open or the write fails.
        """
        resource = self._require_open()
        try:
            resource.write_raw(data)
        except Exception as exc:
            raise TransportError(f"VISA write failed: {exc}") from exc

    def flush(self) -> None:
        """No-op; ``write_raw`` returns once the bytes are handed to VISA."""
        self._require_open()

    def readline(self) -> bytes:
        """Read bytes up to and including the ``\\n`` termination character.

        Raises:
            TransportError: If the resource is not open, the read times out,
                or the VISA layer reports an error.
        """
        resource = self._require_open()
        try:
            line: bytes = resource.read_raw()
        except Exception as exc:
            raise TransportError(f"VISA read failed: {exc}") from exc
        if not line.endswith(b"\n"):
            raise TransportError(f"Incomplete reply from {self._resource_string!r}: {line!r}")
        return line

    def _require_open(self) -> Any:
        if self._resource is None:
            raise TransportError("VISA resource is not open")
        return self._resource
