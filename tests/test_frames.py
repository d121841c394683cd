import pytest

from mrjsystem.frames import (
    FRAME_SIZE,
    MAX_DATA_LENGTH,
    Frame,
    FrameError,
    FrameType,
    build_frame,
    compute_checksum,
    parse_frame,
)


def test_build_frame_layout():
    raw = build_frame(FrameType.HEARTBEAT, b"OK", timestamp=0x01020304)
    assert len(raw) == FRAME_SIZE == 256
    assert raw[0] == 0x12
    assert raw[1:3] == (2).to_bytes(2, "big")
    assert raw[3:5] == b"OK"
    assert raw[252:256] == b"\x01\x02\x03\x04"


def test_checksum_field_matches_compute_checksum():
    raw = build_frame(FrameType.CONNECT_FLECK_GOTHAM, "user&127.0.0.1&8080", timestamp=1700000000)
    assert compute_checksum(raw) == int.from_bytes(raw[250:252], "big")


def test_checksum_ignores_checksum_bytes():
    raw = bytearray(build_frame(FrameType.HEARTBEAT, b"", timestamp=5))
    before = compute_checksum(raw)
    raw[250] ^= 0xFF
    raw[251] ^= 0xFF
    assert compute_checksum(raw) == before


@pytest.mark.parametrize("frame_type", list(FrameType))
def test_round_trip(frame_type):
    raw = build_frame(frame_type, "Media&file.png", timestamp=1234567)
    frame = parse_frame(raw)
    assert frame == Frame(frame_type, "Media&file.png", 1234567)


def test_round_trip_unicode_data():
    frame = parse_frame(build_frame(FrameType.FILE_DATA, "distorsión", timestamp=1))
    assert frame.data == "distorsión"


def test_empty_data_round_trip():
    frame = parse_frame(build_frame(FrameType.HEARTBEAT, timestamp=42))
    assert frame.data == ""
    assert frame.type is FrameType.HEARTBEAT


def test_default_timestamp_is_current_time():
    import time

    before = int(time.time())
    frame = parse_frame(build_frame(FrameType.HEARTBEAT))
    after = int(time.time())
    assert before <= frame.timestamp <= after


def test_max_data_length_is_accepted():
    data = b"x" * MAX_DATA_LENGTH
    assert parse_frame(build_frame(FrameType.FILE_DATA, data, timestamp=0)).data == "x" * 247


def test_data_too_long_raises():
    with pytest.raises(FrameError):
        build_frame(FrameType.FILE_DATA, b"x" * (MAX_DATA_LENGTH + 1))


def test_corrupted_frame_raises():
    raw = bytearray(build_frame(FrameType.DISTORT_FLECK_GOTHAM, "Text&a.txt", timestamp=9))
    raw[5] ^= 0x01
    with pytest.raises(FrameError):
        parse_frame(bytes(raw))


def test_short_frame_raises():
    raw = build_frame(FrameType.HEARTBEAT, timestamp=1)
    with pytest.raises(FrameError):
        parse_frame(raw[:100])


def test_invalid_length_with_valid_checksum_raises():
    raw = bytearray(FRAME_SIZE)
    raw[0] = FrameType.FILE_DATA
    raw[1:3] = (MAX_DATA_LENGTH + 1).to_bytes(2, "big")
    raw[250:252] = compute_checksum(raw).to_bytes(2, "big")
    with pytest.raises(FrameError):
        parse_frame(bytes(raw))


def test_data_stops_at_nul():
    frame = parse_frame(build_frame(FrameType.FILE_DATA, b"ab\x00cd", timestamp=0))
    assert frame.data == "ab"


def test_unknown_type_kept_as_int():
    frame = parse_frame(build_frame(0x7F, b"", timestamp=0))
    assert frame.type == 0x7F
    assert not isinstance(frame.type, FrameType)


def test_fields_split_like_tokens():
    frame = parse_frame(build_frame(FrameType.CONNECT_WORKER_GOTHAM, "Media&10.0.0.1&&9000", timestamp=0))
    assert frame.fields() == ["Media", "10.0.0.1", "9000"]


def test_end_distort_is_alias_of_start_distort_worker_fleck():
    assert FrameType.END_DISTORT_FLECK_WORKER is FrameType.START_DISTORT_WORKER_FLECK
    assert build_frame(FrameType.END_DISTORT_FLECK_WORKER, timestamp=0)[0] == 0x04