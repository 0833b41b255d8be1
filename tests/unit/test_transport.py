"""Tests for SerialTransport with a mocked pyserial port."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import serial

from kel103.errors import DeviceModelError, TransportError
from kel103.load import connect
from kel103.transport import SerialTransport


def _open_transport(**kwargs: object) -> SerialTransport:
    transport = SerialTransport("/dev/ttyACM0", 115200, **kwargs)  # type: ignore[arg-type]
    transport.open()
    return transport


# ---------------------------------------------------------------------------
# open / close lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    @patch("kel103.transport.serial.Serial")
    def test_open_configures_port(self, mock_serial_cls: MagicMock) -> None:
        transport = _open_transport()
        assert transport.is_open
        mock_serial_cls.assert_called_once_with("/dev/ttyACM0", baudrate=115200, timeout=1.0)

    @patch("kel103.transport.serial.Serial")
    def test_custom_timeout(self, mock_serial_cls: MagicMock) -> None:
        transport = _open_transport(timeout=2.5)
        assert transport.timeout == 2.5
        mock_serial_cls.assert_called_once_with("/dev/ttyACM0", baudrate=115200, timeout=2.5)

    @patch("kel103.transport.serial.Serial")
    def test_open_idempotent(self, mock_serial_cls: MagicMock) -> None:
        transport = _open_transport()
        transport.open()
        mock_serial_cls.assert_called_once()

    @patch("kel103.transport.serial.Serial")
    def test_open_failure(self, mock_serial_cls: MagicMock) -> None:
        mock_serial_cls.side_effect = serial.SerialException("could not open port")
        transport = SerialTransport("/dev/ttyUSB9")
        with pytest.raises(TransportError, match="could not open port"):
            transport.open()
        assert not transport.is_open

    @patch("kel103.transport.serial.Serial")
    def test_close(self, mock_serial_cls: MagicMock) -> None:
        transport = _open_transport()
        transport.close()
        transport.close()
        assert not transport.is_open
        mock_serial_cls.return_value.close.assert_called_once()

    @patch("kel103.transport.serial.Serial")
    def test_context_manager(self, mock_serial_cls: MagicMock) -> None:
        with SerialTransport("/dev/ttyACM0") as transport:
            assert transport.is_open
        assert not transport.is_open

    def test_defaults(self) -> None:
        transport = SerialTransport("COM3")
        assert transport.port == "COM3"
        assert transport.baud_rate == 9600
        assert transport.timeout == 1.0
        assert not transport.is_open


# ---------------------------------------------------------------------------
# I/O
# ---------------------------------------------------------------------------


class TestIo:
    @patch("kel103.transport.serial.Serial")
    def test_write_and_flush(self, mock_serial_cls: MagicMock) -> None:
        transport = _open_transport()
        transport.write(b":FUNC CC\n")
        transport.flush()
        port = mock_serial_cls.return_value
        port.write.assert_called_once_with(b":FUNC CC\n")
        port.flush.assert_called_once()

    @patch("kel103.transport.serial.Serial")
    def test_readline(self, mock_serial_cls: MagicMock) -> None:
        mock_serial_cls.return_value.readline.return_value = b"12.500V\n"
        transport = _open_transport()
        assert transport.readline() == b"12.500V\n"

    @patch("kel103.transport.serial.Serial")
    def test_readline_timeout(self, mock_serial_cls: MagicMock) -> None:
        mock_serial_cls.return_value.readline.return_value = b""
        transport = _open_transport()
        with pytest.raises(TransportError, match="Timed out"):
            transport.readline()

    @patch("kel103.transport.serial.Serial")
    def test_readline_partial(self, mock_serial_cls: MagicMock) -> None:
        mock_serial_cls.return_value.readline.return_value = b"12.5"
        transport = _open_transport()
        with pytest.raises(TransportError, match="partial data"):
            transport.readline()

    @patch("kel103.transport.serial.Serial")
    def test_write_failure(self, mock_serial_cls: MagicMock) -> None:
        mock_serial_cls.return_value.write.side_effect = serial.SerialTimeoutException("write timeout")
        transport = _open_transport()
        with pytest.raises(TransportError, match="write timeout"):
            transport.write(b"*IDN?\n")

    @patch("kel103.transport.serial.Serial")
    def test_read_failure(self, mock_serial_cls: MagicMock) -> None:
        mock_serial_cls.return_value.readline.side_effect = OSError("device reports readiness")
        transport = _open_transport()
        with pytest.raises(TransportError):
            transport.readline()

    def test_io_requires_open(self) -> None:
        transport = SerialTransport("/dev/ttyACM0")
        with pytest.raises(TransportError, match="not open"):
            transport.write(b"*IDN?\n")
        with pytest.raises(TransportError, match="not open"):
            transport.flush()
        with pytest.raises(TransportError, match="not open"):
            transport.readline()


# ---------------------------------------------------------------------------
# connect() over a mocked port
# ---------------------------------------------------------------------------


class TestConnectOverSerial:
    @patch("kel103.transport.serial.Serial")
    def test_connect_opens_port_and_identifies(self, mock_serial_cls: MagicMock) -> None:
        mock_serial_cls.return_value.readline.return_value = b"KORAD-KEL103 V3.30\n"
        load = connect("/dev/ttyACM0", 115200)
        mock_serial_cls.assert_called_once_with("/dev/ttyACM0", baudrate=115200, timeout=1.0)
        mock_serial_cls.return_value.write.assert_called_once_with(b"*IDN?\n")
        load.close()
        mock_serial_cls.return_value.close.assert_called_once()

    @patch("kel103.transport.serial.Serial")
    def test_connect_wrong_model_closes_port(self, mock_serial_cls: MagicMock) -> None:
        mock_serial_cls.return_value.readline.return_value = b"OTHERMODEL,1.0\n"
        with pytest.raises(DeviceModelError):
            connect("/dev/ttyACM0")
        mock_serial_cls.return_value.close.assert_called_once()

    @patch("kel103.transport.serial.Serial")
    def test_connect_open_failure(self, mock_serial_cls: MagicMock) -> None:
        mock_serial_cls.side_effect = serial.SerialException("no such device")
        with pytest.raises(TransportError):
            connect("/dev/ttyACM0")
