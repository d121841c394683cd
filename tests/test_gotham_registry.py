import socket

import pytest

from mrjsystem.connections import recv_frame
from mrjsystem.frames import FrameType
from mrjsystem.gotham_registry import RegistryFull, WorkerRegistry


@pytest.fixture
def pairs():
    created = []

    def make():
        pair = socket.socketpair()
        created.append(pair)
        return pair

    yield make
    for a, b in created:
        a.close()
        b.close()


def test_first_worker_of_each_type_is_principal(pairs):
    registry = WorkerRegistry()
    t1, _ = pairs()
    t2, _ = pairs()
    m1, _ = pairs()
    assert registry.add("Text&127.0.0.1&9000", t1) is True
    assert registry.add("Text&127.0.0.1&9001", t2) is False
    assert registry.add("Media&127.0.0.1&9002", m1) is True
    assert registry.principal("Text").port == "9000"
    assert registry.principal("Media").sock is m1
    assert len(registry) == 3


def test_unknown_type_is_stored_but_never_principal(pairs):
    registry = WorkerRegistry()
    s, _ = pairs()
    assert registry.add("Audio&127.0.0.1&9000", s) is False
    assert registry.principal("Audio") is None
    assert registry.find_by_socket(s).worker_type == "Audio"


def test_add_rejects_bad_data(pairs):
    registry = WorkerRegistry()
    s, _ = pairs()
    with pytest.raises(ValueError):
        registry.add("Text&127.0.0.1", s)
    assert len(registry) == 0


def test_add_raises_when_full(pairs):
    registry = WorkerRegistry(max_workers=2)
    registry.add("Text&a&1", pairs()[0])
    registry.add("Text&b&2", pairs()[0])
    with pytest.raises(RegistryFull):
        registry.add("Text&c&3", pairs()[0])
    assert len(registry) == 2


def test_find_by_socket(pairs):
    registry = WorkerRegistry()
    s1, _ = pairs()
    s2, _ = pairs()
    registry.add("Text&host&1", s1)
    assert registry.find_by_socket(s1).ip == "host"
    assert registry.find_by_socket(s2) is None


def test_removing_principal_promotes_next_of_same_type(pairs):
    registry = WorkerRegistry()
    t1, t1_peer = pairs()
    m1, _ = pairs()
    t2, t2_peer = pairs()
    registry.add("Text&a&1", t1)
    registry.add("Media&b&2", m1)
    registry.add("Text&c&3", t2)

    promoted = registry.remove(t1)

    assert promoted.sock is t2
    assert registry.principal("Text") is promoted
    assert t1.fileno() == -1
    frame = recv_frame(t2_peer)
    assert frame.type == FrameType.PRINCIPAL_WORKER
    assert frame.data == ""
    assert len(registry) == 2


def test_removing_last_principal_leaves_none(pairs):
    registry = WorkerRegistry()
    m1, _ = pairs()
    registry.add("Media&a&1", m1)
    assert registry.remove(m1) is None
    assert registry.principal("Media") is None
    assert len(registry) == 0


def test_removing_secondary_keeps_principal(pairs):
    registry = WorkerRegistry()
    t1, _ = pairs()
    t2, _ = pairs()
    registry.add("Text&a&1", t1)
    registry.add("Text&b&2", t2)
    assert registry.remove(t2) is None
    assert registry.principal("Text").sock is t1
    assert [w.sock for w in registry.workers] == [t1]


def test_remove_unknown_socket_raises(pairs):
    registry = WorkerRegistry()
    s, _ = pairs()
    with pytest.raises(KeyError):
        registry.remove(s)


def test_close_all_closes_sockets(pairs):
    registry = WorkerRegistry()
    s1, peer1 = pairs()
    s2, peer2 = pairs()
    registry.add("Text&a&1", s1)
    registry.add("Media&b&2", s2)
    registry.close_all()
    assert len(registry) == 0
    assert registry.principal("Text") is None
    assert peer1.recv(1) == b""
    assert peer2.recv(1) == b""