from __future__ import annotations

import serial

BAUD_RATE = 9600

# The Geiger counter barks a line every second; never wait for more than what is buffered.
GEIGER_READ_TIMEOUT = 0.010
PARTICULATE_READ_TIMEOUT = 0.250


def open_serial(path: str, timeout: float) -> serial.Serial:
    """Open ``path`` as 9600 8N1 without flow control."""
    return serial.Serial(
        port=path,
        baudrate=BAUD_RATE,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        xonxoff=False,
        rtscts=False,
        timeout=timeout,
    )
