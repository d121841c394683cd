import socket
import threading

import pytest

from mrjsystem.connections import recv_frame, send_frame
from mrjsystem.fleck_distort import (
    DistortJob,
    WorkerInfo,
    file_size,
    md5sum,
    parse_worker_info,
    receive_distort_reply,
    run_distort,
    send_distort_request,
)
from mrjsystem.frames import FrameType, build_frame


def _listening_worker():
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)

    def serve():
        conn, _ = listener.accept()
        conn.close()
        listener.close()

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    return listener.getsockname()[1], thread


def _free_port():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    return port


def test_send_distort_request_frame():
    ours, theirs = socket.socketpair()
    with ours, theirs:
        send_distort_request(ours, "notes.txt", "Text")
        frame = recv_frame(theirs)
        assert frame.type == FrameType.DISTORT_FLECK_GOTHAM
        assert frame.fields() == ["Text", "notes.txt"]


def test_send_distort_request_closed_socket():
    ours, theirs = socket.socketpair()
    theirs.close()
    ours.close()
    with pytest.raises(OSError):
        send_distort_request(ours, "notes.txt", "Text")


def test_receive_distort_reply_returns_frame():
    ours, theirs = socket.socketpair()
    with ours, theirs:
        send_frame(theirs, FrameType.DISTORT_FLECK_GOTHAM, "DISTORT_KO")
        frame = receive_distort_reply(ours)
        assert frame.type == FrameType.DISTORT_FLECK_GOTHAM
        assert frame.data == "DISTORT_KO"


def test_receive_distort_reply_peer_closed():
    ours, theirs = socket.socketpair()
    theirs.close()
    with ours:
        assert receive_distort_reply(ours) is None


def test_receive_distort_reply_bad_checksum():
    ours, theirs = socket.socketpair()
    with ours, theirs:
        raw = bytearray(build_frame(FrameType.DISTORT_FLECK_GOTHAM, "MEDIA_KO"))
        raw[251] ^= 0x01
        theirs.sendall(bytes(raw))
        assert receive_distort_reply(ours) is None


def test_parse_worker_info():
    info = parse_worker_info("127.0.0.1&8085", "Media")
    assert (info.ip, info.port, info.worker_type) == ("127.0.0.1", "8085", "Media")
    assert info.sock is None


@pytest.mark.parametrize("data", ["", "127.0.0.1", "&&"])
def test_parse_worker_info_invalid(data):
    with pytest.raises(ValueError):
        parse_worker_info(data, "Text")


def test_file_size_matches_written_bytes(tmp_path):
    path = tmp_path / "notes.txt"
    payload = b"chaos" * 100
    path.write_bytes(payload)
    assert file_size(path) == len(payload)


def test_file_size_missing(tmp_path):
    with pytest.raises(OSError):
        file_size(tmp_path / "absent.txt")


def test_md5sum_known_values(tmp_path):
    empty = tmp_path / "empty.txt"
    empty.write_bytes(b"")
    abc = tmp_path / "abc.txt"
    abc.write_bytes(b"abc")
    assert md5sum(empty) == "d41d8cd98f00b204e9800998ecf8427e"
    assert md5sum(abc) == "900150983cd24fb0d6963f7d28e17f72"


def test_md5sum_missing(tmp_path):
    with pytest.raises(OSError):
        md5sum(tmp_path / "absent.txt")


def test_run_distort_success(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"some text to distort")
    port, thread = _listening_worker()
    calls = []
    worker = WorkerInfo("127.0.0.1", str(port), "Text")
    job = DistortJob("bruce", str(path), "3", worker, on_done=lambda: calls.append(1))

    request = run_distort(job)
    thread.join(timeout=5)

    assert request == f"bruce&{path}&{file_size(path)}&{md5sum(path)}"
    assert worker.status == 100
    assert worker.sock is None
    assert calls == [1]


def test_run_distort_unreachable_worker_releases(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"x")
    calls = []
    worker = WorkerInfo("127.0.0.1", str(_free_port()), "Text")
    job = DistortJob("bruce", str(path), "3", worker, on_done=lambda: calls.append(1))

    with pytest.raises(OSError):
        run_distort(job)
    assert worker.status == 0
    assert calls == [1]


def test_run_distort_invalid_ip(tmp_path):
    worker = WorkerInfo("bad-ip", "8000", "Media")
    job = DistortJob("bruce", str(tmp_path / "x.png"), "2", worker)
    with pytest.raises(OSError):
        run_distort(job)