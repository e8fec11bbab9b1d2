import socket
import struct
import threading
from array import array
from collections import namedtuple

import pytest

from kilt.client import DISCONNECT, REQUEST_UID, UID_SIZE, KiltClient, read_exact
from kilt.interfaces import DataSource

Query = namedtuple("Query", "id index")
HEADER = struct.Struct("=Q")


class FakeSource(DataSource):
    def __init__(self, length=384):
        super().__init__()
        self.length = length

    def sample(self, sample_index, buffer_index):
        return [sample_index * 1000 + m for m in range(self.length)]

    def available_sample_count(self):
        return 10

    def max_samples_in_memory(self):
        return 4

    def load_samples_impl(self, user):
        pass

    def unload_samples(self, user):
        pass


@pytest.fixture
def listener():
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.bind(("127.0.0.1", 0))
    srv.listen(1)
    yield srv
    srv.close()


def connect(listener, complete=lambda responses: None, source=None):
    client = KiltClient(
        source or FakeSource(), complete, "127.0.0.1", listener.getsockname()[1]
    )
    client.connect()
    peer, _ = listener.accept()
    peer.settimeout(5)
    return client, peer


def test_read_exact_joins_chunks():
    a, b = socket.socketpair()
    with a, b:
        b.sendall(b"abc")
        b.sendall(b"def")
        assert read_exact(a, 6) == b"abcdef"


def test_read_exact_raises_on_close():
    a, b = socket.socketpair()
    with a:
        b.sendall(b"ab")
        b.close()
        with pytest.raises(ConnectionError):
            read_exact(a, 4)


def test_invalid_address():
    client = KiltClient(FakeSource(), lambda r: None, "not-an-ip", 1)
    with pytest.raises(ValueError):
        client.connect()


def test_inference_requires_connection():
    client = KiltClient(FakeSource(), lambda r: None)
    with pytest.raises(RuntimeError):
        client.inference([Query(1, 0)])


def test_unique_server_id(listener):
    client, peer = connect(listener)
    with peer:
        peer.sendall(b"server-1".ljust(UID_SIZE, b"\0"))
        assert client.unique_server_id() == "server-1"
        assert HEADER.unpack(read_exact(peer, 8))[0] == REQUEST_UID
        client.close()


def test_inference_sends_and_receives(listener):
    received = []
    done = threading.Event()

    def complete(responses):
        received.extend(responses)
        done.set()

    client, peer = connect(listener, complete)
    with peer:
        client.inference([Query(7, 2)])
        assert client.sent == 1
        assert HEADER.unpack(read_exact(peer, 8))[0] == 7
        values = array("Q")
        values.frombytes(read_exact(peer, 8 * 384))
        assert list(values) == [2000 + m for m in range(384)]

        peer.sendall(HEADER.pack(7) + array("f", [0.5] * 768).tobytes())
        assert done.wait(5)
        assert received[0][0] == 7
        assert received[0][1] == [0.5] * 768
        assert client.received == 1
        client.close()


def test_receive_one_direct(listener):
    client, peer = connect(listener)
    with peer:
        peer.sendall(HEADER.pack(42) + array("f", [1.0] * 768).tobytes())
        sample_id, values = client.receive_one()
        assert sample_id == 42
        assert len(values) == 768
        assert values[0] == 1.0
        client.close()


def test_short_sample_rejected(listener):
    client, peer = connect(listener, source=FakeSource(length=10))
    with peer:
        with pytest.raises(ValueError):
            client.inference([Query(1, 0)])
        client.close()


def test_close_sends_disconnect(listener):
    client, peer = connect(listener)
    with peer:
        client.close()
        assert HEADER.unpack(read_exact(peer, 8))[0] == DISCONNECT
        with pytest.raises(ConnectionError):
            read_exact(peer, 1)


def test_data_source_passthrough():
    client = KiltClient(FakeSource(), lambda r: None)
    assert client.available_samples_max() == 10
    assert client.samples_in_memory_max() == 4