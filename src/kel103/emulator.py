"""KEL103 electronic load emulator.

Provides an in-process emulator implementing the ``LoadTransport`` protocol,
so the driver can be exercised end to end without hardware.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Callable

from kel103.errors import TransportError
from kel103.number import AMP, VOLT, WATT, format_value, strip_unit

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Kel103EmulatorConfig:
    """Configuration for a KEL103 emulator instance.

    Args:
        identity: ``*IDN?`` response string.
        max_voltage: Maximum input voltage in volts (> 0).
        max_current: Maximum input current in amps (> 0).
        max_power: Maximum input power in watts (> 0).
    """

    identity: str
    max_voltage: float = 120.0
    max_current: float = 30.0
    max_power: float = 300.0

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")
        if self.max_voltage <= 0:
            raise ValueError("max_voltage must be > 0")
        if self.max_current <= 0:
            raise ValueError("max_current must be > 0")
        if self.max_power <= 0:
            raise ValueError("max_power must be > 0")


# ---------------------------------------------------------------------------
# Internal state
# ---------------------------------------------------------------------------


@dataclass
class _LoadState:
    voltage_setpoint: float = 0.0
    current_setpoint: float = 0.0
    power_setpoint: float = 0.0
    input_enabled: bool = False
    function: str = "CC"
    dynamic: str = ""
    measured_voltage: float = 0.0
    measured_current: float | None = None
    readback_offsets: dict[str, float] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Emulator
# ---------------------------------------------------------------------------


class Kel103Emulator:
    """In-process KEL103 emulator implementing ``LoadTransport``.

    Written bytes are split into lines; each complete line is executed and
    any reply is queued for :meth:`readline`. Reading with nothing queued
    raises :class:`TransportError`, matching a serial read timeout.

    Args:
        config: Emulator configuration.
    """

    def __init__(self, config: Kel103EmulatorConfig) -> None:
        self._config = config
        self._state = _LoadState()
        self._pending = b""
        self._replies: deque[bytes] = deque()
        self._overrides: deque[bytes] = deque()
        self._history: list[str] = []
        self._closed = False

        self._set_handlers: dict[str, Callable[[str], None]] = {
            ":VOLT": self._set_voltage,
            ":CURR": self._set_current,
            ":POW": self._set_power,
            ":INP": self._set_input,
            ":FUNC": self._set_function,
            ":DYN": self._set_dynamic,
        }

        self._query_handlers: dict[str, Callable[[], str]] = {
            "*IDN?": lambda: self._config.identity,
            ":VOLT?": self._get_voltage,
            ":CURR?": self._get_current,
            ":POW?": self._get_power,
            ":INP?": self._get_input,
            ":DYN?": lambda: self._state.dynamic,
            ":MEAS:VOLT?": self._measure_voltage,
            ":MEAS:CURR?": self._measure_current,
            ":MEAS:POW?": self._measure_power,
        }

    # -- Transport interface ------------------------------------------------

    def write(self, data: bytes) -> None:
        """Accept bytes from the driver, executing each complete line."""
        if self._closed:
            raise TransportError("Emulator is closed")
        self._pending += data
        while b"\n" in self._pending:
            raw, self._pending = self._pending.split(b"\n", 1)
            try:
                line = raw.decode("ascii").strip()
            except UnicodeDecodeError as exc:
                raise TransportError(f"Emulator received non-ASCII command: {raw!r}") from exc
            if line:
                self._history.append(line)
                self._execute(line)

    def flush(self) -> None:
        """No-op; writes are processed synchronously."""

    def readline(self) -> bytes:
        """Return the oldest queued reply line."""
        if self._closed:
            raise TransportError("Emulator is closed")
        if not self._replies:
            raise TransportError("Timed out waiting for reply from emulator")
        return self._replies.popleft()

    def close(self) -> None:
        """Mark the emulator closed."""
        self._closed = True

    # -- Inspection ---------------------------------------------------------

    @property
    def closed(self) -> bool:
        """True once :meth:`close` has been called."""
        return self._closed

    @property
    def history(self) -> tuple[str, ...]:
        """Every command line received, in order."""
        return tuple(self._history)

    @property
    def function(self) -> str:
        """Active regulation mode (``CC``, ``CW``, ``CR``)."""
        return self._state.function

    @property
    def input_enabled(self) -> bool:
        """Whether the load input is on."""
        return self._state.input_enabled

    # -- Test helpers -------------------------------------------------------

    def set_measured_voltage(self, value: float) -> None:
        """Set the voltage returned by ``:MEAS:VOLT?``."""
        self._state.measured_voltage = value

    def set_measured_current(self, value: float) -> None:
        """Set a fixed current returned by ``:MEAS:CURR?``.

        Without an override the measured current follows the current
        set-point while the input is on.
        """
        self._state.measured_current = value

    def set_readback_offset(self, quantity: str, offset: float) -> None:
        """Skew the value reported by a set-point query.

        Args:
            quantity: One of ``"voltage"``, ``"current"``, ``"power"``.
            offset: Amount added to the stored set-point when queried.
        """
        if quantity not in ("voltage", "current", "power"):
            raise ValueError(f"Unknown quantity: {quantity!r}")
        self._state.readback_offsets[quantity] = offset

    def queue_reply(self, raw: bytes) -> None:
        """Answer the next query with *raw* instead of the emulated reply.

        Replies queued this way are used in order, one per query, so every
        query still receives exactly one reply line.
        """
        self._overrides.append(raw)

    # -- Dispatch -----------------------------------------------------------

    def _execute(self, line: str) -> None:
        if line.endswith("?"):
            if self._overrides:
                self._replies.append(self._overrides.popleft())
                return
            handler = self._query_handlers.get(line.upper())
            if handler is not None:
                self._replies.append((handler() + "\n").encode("utf-8"))
            return
        parts = line.split(None, 1)
        header = parts[0].upper()
        args = parts[1] if len(parts) > 1 else ""
        handler_set = self._set_handlers.get(header)
        if handler_set is not None:
            handler_set(args)

    # -- Set handlers -------------------------------------------------------

    def _set_voltage(self, args: str) -> None:
        value = self._parse_arg(args, VOLT)
        if value is not None and 0.0 <= value <= self._config.max_voltage:
            self._state.voltage_setpoint = value

    def _set_current(self, args: str) -> None:
        value = self._parse_arg(args, AMP)
        if value is not None and 0.0 <= value <= self._config.max_current:
            self._state.current_setpoint = value

    def _set_power(self, args: str) -> None:
        value = self._parse_arg(args, WATT)
        if value is not None and 0.0 <= value <= self._config.max_power:
            self._state.power_setpoint = value

    def _set_input(self, args: str) -> None:
        token = args.strip().upper()
        if token in ("1", "ON"):
            self._state.input_enabled = True
        elif token in ("0", "OFF"):
            self._state.input_enabled = False

    def _set_function(self, args: str) -> None:
        token = args.strip().upper()
        if token in ("CC", "CV", "CW", "CR"):
            self._state.function = token

    def _set_dynamic(self, args: str) -> None:
        self._state.dynamic = args.strip()

    @staticmethod
    def _parse_arg(args: str, unit: str) -> float | None:
        try:
            return float(strip_unit(args, unit))
        except ValueError:
            return None

    # -- Query handlers -----------------------------------------------------

    def _readback(self, quantity: str, value: float, unit: str) -> str:
        return format_value(value + self._state.readback_offsets.get(quantity, 0.0), unit)

    def _get_voltage(self) -> str:
        return self._readback("voltage", self._state.voltage_setpoint, VOLT)

    def _get_current(self) -> str:
        return self._readback("current", self._state.current_setpoint, AMP)

    def _get_power(self) -> str:
        return self._readback("power", self._state.power_setpoint, WATT)

    def _get_input(self) -> str:
        return "ON" if self._state.input_enabled else "OFF"

    def _current_now(self) -> float:
        if self._state.measured_current is not None:
            return self._state.measured_current
        if self._state.input_enabled:
            return self._state.current_setpoint
        return 0.0

    def _measure_voltage(self) -> str:
        return format_value(self._state.measured_voltage, VOLT)

    def _measure_current(self) -> str:
        return format_value(self._current_now(), AMP)

    def _measure_power(self) -> str:
        return format_value(self._state.measured_voltage * self._current_now(), WATT)


# ---------------------------------------------------------------------------
# Factory functions
# ---------------------------------------------------------------------------


def make_kel103_emulator(firmware: str = "V3.30") -> Kel103Emulator:
    """Create a KEL103 emulator.

    Args:
        firmware: Firmware version for the ``*IDN?`` response.

    Returns:
        Configured emulator instance (120 V, 30 A, 300 W).
    """
    return Kel103Emulator(Kel103EmulatorConfig(identity=f"KORAD-KEL103 {firmware}"))
