"""KEL103 electronic load instrument driver.

Wraps a :class:`~kel103.transport.LoadTransport` with typed methods for the
KEL103 line protocol. Every command is one newline-terminated ASCII line and
every query is answered with exactly one line. Numeric set-points and the
input state are read back after each write because the protocol carries no
acknowledgement.

Typical usage::

    from kel103 import connect

    with connect("/dev/ttyACM0", 115200) as load:
        load.set_constant_current()
        load.set_current(1.5)
        load.set_output(True)
        print(load.measure_volt())
"""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import TYPE_CHECKING

from kel103.errors import DecodingError, DeviceModelError, TransportError, ValueMismatchError
from kel103.number import (
    AMP,
    HERTZ,
    PERCENT,
    SLEW,
    VOLT,
    WATT,
    format_bool,
    format_value,
    parse_input_state,
    parse_measurement,
    values_match,
)
from kel103.transport import DEFAULT_BAUD_RATE, DEFAULT_TIMEOUT, SerialTransport

if TYPE_CHECKING:
    from kel103.transport import LoadTransport

DEFAULT_MODEL = "KEL103"


@dataclass(frozen=True)
class DynamicCvProfile:
    """Dynamic constant-voltage profile alternating between two levels.

    Args:
        voltage1: First voltage level in volts.
        voltage2: Second voltage level in volts.
        frequency: Switching frequency in hertz.
        duty_cycle: Duty cycle in percent.
    """

    voltage1: float
    voltage2: float
    frequency: float
    duty_cycle: float

    def command(self) -> str:
        """Return the ``:DYN 1,...`` command line for this profile."""
        fields = (
            format_value(self.voltage1, VOLT),
            format_value(self.voltage2, VOLT),
            format_value(self.frequency, HERTZ),
            format_value(self.duty_cycle, PERCENT),
        )
        return ":DYN 1," + ",".join(fields)


@dataclass(frozen=True)
class DynamicCcProfile:
    """Dynamic constant-current profile alternating between two levels.

    Args:
        slope1: Rising slew rate in A/us.
        slope2: Falling slew rate in A/us.
        current1: First current level in amps.
        current2: Second current level in amps.
        frequency: Switching frequency in hertz.
        duty_cycle: Duty cycle in percent.
    """

    slope1: float
    slope2: float
    current1: float
    current2: float
    frequency: float
    duty_cycle: float

    def command(self) -> str:
        """Return the ``:DYN 2,...`` command line for this profile."""
        fields = (
            format_value(self.slope1, SLEW),
            format_value(self.slope2, SLEW),
            format_value(self.current1, AMP),
            format_value(self.current2, AMP),
            format_value(self.frequency, HERTZ),
            format_value(self.duty_cycle, PERCENT),
        )
        return ":DYN 2," + ",".join(fields)


class Kel103:
    """High-level driver for the KEL103 electronic load.

    One request is in flight at a time. The driver has no internal locking;
    callers sharing an instance between threads must serialize access.

    Use :func:`connect` to open a port and verify the device model. The
    constructor only wraps an already-open transport.

    Args:
        transport: An open transport implementing :class:`LoadTransport`.
        model: Model token the identification string must contain.
    """

    def __init__(self, transport: LoadTransport, *, model: str = DEFAULT_MODEL) -> None:
        self._transport = transport
        self._model = model
        self._closed = False

    @property
    def model(self) -> str:
        """The model token checked by :meth:`verify_model`."""
        return self._model

    # -- Line protocol -------------------------------------------------------

    def send(self, line: str) -> None:
        """Send one command line.

        Args:
            line: The command without its terminator (e.g. ``":FUNC CC"``).

        Raises:
            TransportError: If the line is not ASCII or the write or flush
                fails.
        """
        try:
            data = line.encode("ascii") + b"\n"
        except UnicodeEncodeError as exc:
            raise TransportError(f"Command is not ASCII: {line!r}") from exc
        try:
            self._transport.write(data)
            self._transport.flush()
        except OSError as exc:
            raise TransportError(f"Failed to send {line!r}: {exc}") from exc

    def send_recv(self, line: str) -> str:
        """Send one command line and read exactly one reply line.

        Args:
            line: The query without its terminator (e.g. ``":VOLT?"``).

        Returns:
            The decoded reply, including its line terminator.

        Raises:
            TransportError: If the exchange fails or the read times out.
            DecodingError: If the reply is not valid UTF-8.
        """
        self.send(line)
        try:
            raw = self._transport.readline()
        except OSError as exc:
            raise TransportError(f"Failed to read reply to {line!r}: {exc}") from exc
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            raise DecodingError(raw) from None

    # -- Identity / lifecycle ------------------------------------------------

    def device_info(self) -> str:
        """Query the identification string (``*IDN?``)."""
        return self.send_recv("*IDN?").rstrip("\r\n")

    def verify_model(self) -> str:
        """Check that the device identifies as the expected model.

        Returns:
            The identification string.

        Raises:
            DeviceModelError: If the model token is missing from the reply.
        """
        info = self.device_info()
        if self._model not in info:
            raise DeviceModelError(self._model, info)
        return info

    def close(self) -> None:
        """Close the underlying transport. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        self._transport.close()

    def __enter__(self) -> Kel103:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Voltage -------------------------------------------------------------

    def measure_volt(self) -> float:
        """Measure the input voltage."""
        return parse_measurement(self.send_recv(":MEAS:VOLT?"), VOLT)

    def measure_set_volt(self) -> float:
        """Query the constant-voltage set-point."""
        return parse_measurement(self.send_recv(":VOLT?"), VOLT)

    def set_volt(self, voltage: float) -> None:
        """Set the constant-voltage level and verify it.

        Args:
            voltage: Voltage in volts.

        Raises:
            ValueMismatchError: If the read-back differs from *voltage*.
        """
        self.send(f":VOLT {format_value(voltage, VOLT)}")
        self._verify("voltage", voltage, self.measure_set_volt())

    # -- Power ---------------------------------------------------------------

    def measure_power(self) -> float:
        """Measure the input power."""
        return parse_measurement(self.send_recv(":MEAS:POW?"), WATT)

    def measure_set_power(self) -> float:
        """Query the constant-power set-point."""
        return parse_measurement(self.send_recv(":POW?"), WATT)

    def set_power(self, power: float) -> None:
        """Set the constant-power level and verify it.

        Args:
            power: Power in watts.

        Raises:
            ValueMismatchError: If the read-back differs from *power*.
        """
        self.send(f":POW {format_value(power, WATT)}")
        self._verify("power", power, self.measure_set_power())

    # -- Current -------------------------------------------------------------

    def measure_current(self) -> float:
        """Measure the input current."""
        return parse_measurement(self.send_recv(":MEAS:CURR?"), AMP)

    def measure_set_current(self) -> float:
        """Query the constant-current set-point."""
        return parse_measurement(self.send_recv(":CURR?"), AMP)

    def set_current(self, current: float) -> None:
        """Set the constant-current level and verify it.

        Args:
            current: Current in amps.

        Raises:
            ValueMismatchError: If the read-back differs from *current*.
        """
        self.send(f":CURR {format_value(current, AMP)}")
        self._verify("current", current, self.measure_set_current())

    # -- Input ---------------------------------------------------------------

    def check_output(self) -> bool:
        """Query whether the load input is enabled.

        Raises:
            DeviceProtocolError: If the reply contains neither ``ON`` nor ``OFF``.
        """
        return parse_input_state(self.send_recv(":INP?"), ":INP?")

    def set_output(self, state: bool) -> None:
        """Enable or disable the load input and verify the new state.

        Raises:
            ValueMismatchError: If the device reports a different state.
        """
        self.send(f":INP {format_bool(state)}")
        actual = self.check_output()
        if actual != state:
            raise ValueMismatchError("output", state, actual)

    # -- Function mode -------------------------------------------------------
    # The protocol has no query confirming the active mode, so these are not
    # read back.

    def set_constant_current(self) -> None:
        """Switch to constant-current (CC) mode."""
        self.send(":FUNC CC")

    def set_constant_power(self) -> None:
        """Switch to constant-power (CW) mode."""
        self.send(":FUNC CW")

    def set_constant_resistance(self) -> None:
        """Switch to constant-resistance (CR) mode."""
        self.send(":FUNC CR")

    # -- Dynamic mode --------------------------------------------------------

    def set_dynamic_profile(self, profile: DynamicCvProfile | DynamicCcProfile) -> None:
        """Send a dynamic-mode profile. Not read back."""
        self.send(profile.command())

    def set_dynamic_mode_cv(
        self, voltage1: float, voltage2: float, freq: float, duty_cycle: float
    ) -> None:
        """Configure the dynamic constant-voltage profile.

        Args:
            voltage1: First voltage level in volts.
            voltage2: Second voltage level in volts.
            freq: Switching frequency in hertz.
            duty_cycle: Duty cycle in percent.
        """
        self.set_dynamic_profile(DynamicCvProfile(voltage1, voltage2, freq, duty_cycle))

    def set_dynamic_mode_cc(
        self,
        slope1: float,
        slope2: float,
        current1: float,
        current2: float,
        freq: float,
        duty_cycle: float,
    ) -> None:
        """Configure the dynamic constant-current profile.

        Args:
            slope1: Rising slew rate in A/us.
            slope2: Falling slew rate in A/us.
            current1: First current level in amps.
            current2: Second current level in amps.
            freq: Switching frequency in hertz.
            duty_cycle: Duty cycle in percent.
        """
        self.set_dynamic_profile(
            DynamicCcProfile(slope1, slope2, current1, current2, freq, duty_cycle)
        )

    def get_dynamic_mode(self) -> str:
        """Query the dynamic-mode settings (``:DYN?``).

        Returns:
            The raw reply with only the trailing newline removed.
        """
        return self.send_recv(":DYN?").rstrip("\n")

    # -- Private helpers -----------------------------------------------------

    @staticmethod
    def _verify(quantity: str, expected: float, actual: float) -> None:
        if not values_match(expected, actual):
            raise ValueMismatchError(quantity, expected, actual)


def connect(
    port: str,
    baud_rate: int = DEFAULT_BAUD_RATE,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    model: str = DEFAULT_MODEL,
    transport: LoadTransport | None = None,
) -> Kel103:
    """Open a KEL103 and verify its identity.

    Standard factory entry point. Opens a :class:`SerialTransport` (unless an
    open *transport* is supplied), wraps it in a :class:`Kel103`, and checks
    that ``*IDN?`` reports *model*. The transport is closed if the handshake
    fails.

    Args:
        port: Serial device (e.g. ``"/dev/ttyACM0"`` or ``"COM3"``).
        baud_rate: Bit rate. Defaults to 9600.
        timeout: Read timeout in seconds. Defaults to 1.
        model: Required model token in the identification string.
        transport: Already-open transport to use instead of a serial port.

    Returns:
        Connected driver instance.

    Raises:
        TransportError: If the port cannot be opened or the handshake fails
            at the transport level.
        DeviceModelError: If the device is not the expected model.
    """
    if transport is None:
        serial_transport = SerialTransport(port, baud_rate, timeout=timeout)
        serial_transport.open()
        transport = serial_transport
    load = Kel103(transport, model=model)
    try:
        load.verify_model()
    except BaseException:
        load.close()
        raise
    return load
