"""SDS011 particulate sensor framing.

Commands are 19-byte frames ``AA B4 <cmd> <12 data bytes> FF FF <checksum> AB``;
replies are 10-byte frames ``AA <C0|C5> <6 data bytes> <checksum> AB``.
"""

from __future__ import annotations

from typing import Optional, Tuple

HEAD = 0xAA
TAIL = 0xAB
COMMAND_ID = 0xB4
REPLY_MEASUREMENT = 0xC0
REPLY_ACK = 0xC5
REPLY_LENGTH = 10

CMD_REPORTING_MODE = 0x02
CMD_QUERY = 0x04
CMD_SLEEP_WORK = 0x06

_SET = 0x01
_QUERY_MODE = 0x01
_SLEEP = 0x00
_WORK = 0x01
_ALL_DEVICES = b"\xff\xff"
_DATA_LENGTH = 12


def _checksum(data: bytes) -> int:
    return sum(data) & 0xFF


def build_command(command: int, data: bytes = b"") -> bytes:
    if len(data) > _DATA_LENGTH:
        raise ValueError(f"SDS011 command data is at most {_DATA_LENGTH} bytes")
    body = bytes([command]) + data.ljust(_DATA_LENGTH, b"\x00") + _ALL_DEVICES
    return bytes([HEAD, COMMAND_ID]) + body + bytes([_checksum(body), TAIL])


QUERY_MODE_COMMAND = build_command(CMD_REPORTING_MODE, bytes([_SET, _QUERY_MODE]))
QUERY_COMMAND = build_command(CMD_QUERY)
SLEEP_COMMAND = build_command(CMD_SLEEP_WORK, bytes([_SET, _SLEEP]))
WORK_COMMAND = build_command(CMD_SLEEP_WORK, bytes([_SET, _WORK]))


def find_frame(buffer: bytes, kind: int) -> Optional[bytes]:
    """First well-formed reply of ``kind`` in ``buffer``, scanning past misaligned bytes."""
    start = buffer.find(bytes([HEAD, kind]))
    while start != -1:
        frame = buffer[start : start + REPLY_LENGTH]
        if (
            len(frame) == REPLY_LENGTH
            and frame[-1] == TAIL
            and _checksum(frame[2:8]) == frame[8]
        ):
            return frame
        start = buffer.find(bytes([HEAD, kind]), start + 1)
    return None


def is_ack(buffer: bytes, command: int, value: int) -> bool:
    frame = find_frame(buffer, REPLY_ACK)
    return frame is not None and frame[2] == command and frame[3] == _SET and frame[4] == value


def is_query_mode_ack(buffer: bytes) -> bool:
    return is_ack(buffer, CMD_REPORTING_MODE, _QUERY_MODE)


def is_work_ack(buffer: bytes, working: bool) -> bool:
    return is_ack(buffer, CMD_SLEEP_WORK, _WORK if working else _SLEEP)


def parse_measurement(buffer: bytes) -> Optional[Tuple[int, int]]:
    """``(pm2_5, pm10)`` in tenths of ug/m3 from the first measurement frame, if any."""
    frame = find_frame(buffer, REPLY_MEASUREMENT)
    if frame is None:
        return None
    pm2_5 = frame[2] | (frame[3] << 8)
    pm10 = frame[4] | (frame[5] << 8)
    return pm2_5, pm10
