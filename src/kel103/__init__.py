"""Driver for the KEL103 electronic load.

This package provides serial control of the KEL103 bench electronic load
over its line-based ASCII protocol. It includes:

- Transport abstraction with pyserial and PyVISA implementations
- The :class:`Kel103` driver with read-back verification of set-points
- Pure number formatting and reply parsing utilities
- An in-process emulator for testing without hardware
- Exception types for every failure class

Typical usage::

    from kel103 import connect

    with connect("/dev/ttyACM0", 115200) as load:
        load.set_constant_current()
        load.set_current(1.5)
        load.set_output(True)
        print(f"{load.measure_volt()} V")
"""

from kel103.config import LoadConfig, find_config, load_config
from kel103.emulator import Kel103Emulator, Kel103EmulatorConfig, make_kel103_emulator
from kel103.errors import (
    DecodingError,
    DeviceModelError,
    DeviceProtocolError,
    Kel103Error,
    TransportError,
    ValueMismatchError,
    ValueParsingError,
)
from kel103.load import DynamicCcProfile, DynamicCvProfile, Kel103, connect
from kel103.number import (
    VERIFY_TOLERANCE,
    format_bool,
    format_value,
    parse_input_state,
    parse_measurement,
    strip_unit,
    values_match,
)
from kel103.transport import LoadTransport, SerialTransport
from kel103.visa import VisaTransport

__all__ = [
    # Config
    "LoadConfig",
    "find_config",
    "load_config",
    # Emulator
    "Kel103Emulator",
    "Kel103EmulatorConfig",
    "make_kel103_emulator",
    # Errors
    "DecodingError",
    "DeviceModelError",
    "DeviceProtocolError",
    "Kel103Error",
    "TransportError",
    "ValueMismatchError",
    "ValueParsingError",
    # Driver
    "DynamicCcProfile",
    "DynamicCvProfile",
    "Kel103",
    "connect",
    # Number parsing/formatting
    "VERIFY_TOLERANCE",
    "format_bool",
    "format_value",
    "parse_input_state",
    "parse_measurement",
    "strip_unit",
    "values_match",
    # Transport
    "LoadTransport",
    "SerialTransport",
    "VisaTransport",
]
