"""Command-line interface for the KEL103 electronic load.

Usage:
    # Identify the instrument
    kel103 --device /dev/ttyACM0 --baud-rate 115200 device-info

    # Draw 1.5 A in constant-current mode
    kel103 -d /dev/ttyACM0 set-constant-current
    kel103 -d /dev/ttyACM0 set-current 1.5
    kel103 -d /dev/ttyACM0 set-enabled true

    # Read the input voltage, taking the port from ~/.config/kel103/config.yaml
    kel103 get-voltage
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable

import yaml

from kel103.config import BACKENDS, LoadConfig, load_config
from kel103.errors import Kel103Error
from kel103.load import Kel103, connect
from kel103.visa import VisaTransport

logger = logging.getLogger(__name__)

Handler = Callable[[Kel103, argparse.Namespace], object]


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def parse_bool(value: str) -> bool:
    """Parse a ``true``/``false`` command-line argument."""
    token = value.strip().lower()
    if token in ("true", "1", "on"):
        return True
    if token in ("false", "0", "off"):
        return False
    raise argparse.ArgumentTypeError(f"expected true or false, got {value!r}")


# Each entry: (subcommand, help, [(arg name, type, help)], handler).
# Handlers returning a value have it printed.
COMMANDS: list[tuple[str, str, list[tuple[str, Callable[[str], object], str]], Handler]] = [
    ("device-info", "Print the identification string", [],
     lambda load, a: load.device_info()),
    ("get-voltage", "Measure the input voltage", [],
     lambda load, a: load.measure_volt()),
    ("get-set-voltage", "Print the CV set-point", [],
     lambda load, a: load.measure_set_volt()),
    ("set-voltage", "Set and verify the CV level",
     [("voltage", float, "Voltage in volts")],
     lambda load, a: load.set_volt(a.voltage)),
    ("get-power", "Measure the input power", [],
     lambda load, a: load.measure_power()),
    ("get-set-power", "Print the CW set-point", [],
     lambda load, a: load.measure_set_power()),
    ("set-power", "Set and verify the CW level",
     [("watts", float, "Power in watts")],
     lambda load, a: load.set_power(a.watts)),
    ("get-current", "Measure the input current", [],
     lambda load, a: load.measure_current()),
    ("get-set-current", "Print the CC set-point", [],
     lambda load, a: load.measure_set_current()),
    ("set-current", "Set and verify the CC level",
     [("amps", float, "Current in amps")],
     lambda load, a: load.set_current(a.amps)),
    ("get-enabled", "Print whether the input is on", [],
     lambda load, a: load.check_output()),
    ("set-enabled", "Turn the input on or off and verify",
     [("enabled", parse_bool, "true or false")],
     lambda load, a: load.set_output(a.enabled)),
    ("set-constant-current", "Switch to CC mode", [],
     lambda load, a: load.set_constant_current()),
    ("set-constant-power", "Switch to CW mode", [],
     lambda load, a: load.set_constant_power()),
    ("set-constant-resistance", "Switch to CR mode", [],
     lambda load, a: load.set_constant_resistance()),
    ("set-dynamic-mode-constant-voltage", "Configure the dynamic CV profile",
     [("voltage1", float, "First level in volts"),
      ("voltage2", float, "Second level in volts"),
      ("frequency", float, "Frequency in Hz"),
      ("duty_cycle", float, "Duty cycle in percent")],
     lambda load, a: load.set_dynamic_mode_cv(a.voltage1, a.voltage2, a.frequency, a.duty_cycle)),
    ("set-dynamic-mode-constant-current", "Configure the dynamic CC profile",
     [("slope1", float, "Rising slew rate in A/us"),
      ("slope2", float, "Falling slew rate in A/us"),
      ("current1", float, "First level in amps"),
      ("current2", float, "Second level in amps"),
      ("freq", float, "Frequency in Hz"),
      ("dutycycle", float, "Duty cycle in percent")],
     lambda load, a: load.set_dynamic_mode_cc(
         a.slope1, a.slope2, a.current1, a.current2, a.freq, a.dutycycle)),
    ("get-dynamic-mode", "Print the dynamic-mode settings", [],
     lambda load, a: load.get_dynamic_mode()),
]


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kel103",
        description="Control a KEL103 electronic load over a serial port",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--config", "-c",
        help="Config file (default: search KEL103_CONFIG_PATH, ~/.config/kel103, /etc/kel103)"
    )
    parser.add_argument(
        "--device", "-d",
        help="Serial device, or VISA resource with --backend visa (e.g. /dev/ttyACM0)"
    )
    parser.add_argument(
        "--baud-rate", "-b", type=int,
        help="Bit rate (default: 9600)"
    )
    parser.add_argument(
        "--timeout", type=float,
        help="Read timeout in seconds (default: 1.0)"
    )
    parser.add_argument(
        "--backend", choices=BACKENDS,
        help="Transport backend (default: serial)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")
    for name, help_text, arguments, handler in COMMANDS:
        sub = subparsers.add_parser(name, help=help_text)
        for arg_name, arg_type, arg_help in arguments:
            sub.add_argument(arg_name, type=arg_type, help=arg_help)
        sub.set_defaults(handler=handler)
    return parser


def resolve_config(args: argparse.Namespace) -> LoadConfig:
    """Merge the config file with command-line overrides."""
    base = load_config(args.config) or LoadConfig()
    return LoadConfig(
        port=args.device or base.port,
        baud_rate=args.baud_rate if args.baud_rate is not None else base.baud_rate,
        timeout=args.timeout if args.timeout is not None else base.timeout,
        model=base.model,
        backend=args.backend or base.backend,
        source_path=base.source_path,
    )


def open_load(config: LoadConfig) -> Kel103:
    """Connect to the load described by *config*."""
    if config.backend == "visa":
        transport = VisaTransport(
            config.port, config.baud_rate, timeout_ms=int(config.timeout * 1000)
        )
        transport.open()
        return connect(config.port, config.baud_rate, model=config.model, transport=transport)
    return connect(config.port, config.baud_rate, timeout=config.timeout, model=config.model)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.debug)

    try:
        config = resolve_config(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Error (config): {exc}", file=sys.stderr)
        return 1

    if not config.port:
        print("Error: no device given. Use --device or set 'port' in the config file",
              file=sys.stderr)
        return 1

    logger.debug("Connecting to %s at %d baud via %s", config.port, config.baud_rate,
                 config.backend)
    try:
        with open_load(config) as load:
            result = args.handler(load, args)
    except Kel103Error as exc:
        print(f"Error ({type(exc).__name__}) in {args.command}: {exc}", file=sys.stderr)
        return 1

    if result is not None:
        print(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
