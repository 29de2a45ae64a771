from __future__ import annotations

import pytest

from drivers import sds011


def test_command_frames_match_datasheet() -> None:
    assert sds011.QUERY_COMMAND == bytes.fromhex("aab404000000000000000000000000ffff02ab")
    assert sds011.SLEEP_COMMAND == bytes.fromhex("aab406010000000000000000000000ffff05ab")
    assert sds011.WORK_COMMAND == bytes.fromhex("aab406010100000000000000000000ffff06ab")
    assert len(sds011.QUERY_MODE_COMMAND) == 19


def test_command_data_is_bounded() -> None:
    with pytest.raises(ValueError):
        sds011.build_command(sds011.CMD_QUERY, bytes(13))


def test_measurement_found_after_leading_garbage() -> None:
    frame = bytes.fromhex("aac0d4043a0aa1601dab")

    assert sds011.parse_measurement(b"\x00\xab\xaa" + frame) == (1236, 2618)


def test_measurement_requires_complete_frame() -> None:
    frame = bytes.fromhex("aac0d4043a0aa1601dab")

    assert sds011.parse_measurement(frame[:9]) is None
    assert sds011.parse_measurement(frame[:-1] + b"\x00") is None


def test_acknowledgements() -> None:
    sleep_ack = bytes.fromhex("aac506010000a16008ab")
    work_ack = bytes.fromhex("aac506010100a16009ab")

    assert sds011.is_work_ack(sleep_ack, working=False)
    assert not sds011.is_work_ack(sleep_ack, working=True)
    assert sds011.is_work_ack(work_ack, working=True)
    assert not sds011.is_query_mode_ack(work_ack)
