"""Network client that sends BERT samples to a remote inference server."""

from __future__ import annotations

import logging
import socket
import struct
import sys
import threading
import time
from array import array
from collections.abc import Callable, Iterable
from typing import Any

from kilt.interfaces import DataSource
from kilt.squad_config import DEFAULT_SERVER_ADDRESS, DEFAULT_SERVER_PORT

_log = logging.getLogger(__name__)

SEQUENCE_LENGTH = 384
UID_SIZE = 128
RETRY_INTERVAL = 5.0

_HEADER = struct.Struct("=Q")
_U64_MASK = (1 << 64) - 1
REQUEST_UID = _U64_MASK
DISCONNECT = _U64_MASK - 1
_RESPONSE_FLOATS = SEQUENCE_LENGTH * 2
_RESPONSE_SIZE = 4 * _RESPONSE_FLOATS

Response = tuple[int, list[float]]


def read_exact(sock: socket.socket, length: int) -> bytes:
    """Read exactly ``length`` bytes, raising ConnectionError if the peer closes."""
    chunks: list[bytes] = []
    remaining = length
    while remaining:
        chunk = sock.recv(remaining)
        if not chunk:
            raise ConnectionError(
                f"connection closed with {remaining} of {length} bytes unread"
            )
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


class KiltClient:
    """Sends samples to an inference server and reports its responses."""

    def __init__(
        self,
        data_source: DataSource,
        complete: Callable[[list[Response]], None],
        host: str = DEFAULT_SERVER_ADDRESS,
        port: int = DEFAULT_SERVER_PORT,
        verbose: int = 0,
    ) -> None:
        self.data_source = data_source
        self.complete = complete
        self.host = host
        self.port = port
        self.verbose = verbose
        self.retry_interval = RETRY_INTERVAL
        self.uid = ""
        self.sent = 0
        self.received = 0
        self._sock: socket.socket | None = None
        self._send_lock = threading.Lock()
        self._terminate = threading.Event()
        self._receiver: threading.Thread | None = None

    def __enter__(self) -> KiltClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def connect(self) -> None:
        """Connect to the server, retrying until it accepts."""
        try:
            socket.inet_pton(socket.AF_INET, self.host)
        except OSError:
            raise ValueError(f"Address invalid / not supported: {self.host!r}") from None
        _log.info("Attempting to connect to %s:%d", self.host, self.port)
        while True:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                sock.connect((self.host, self.port))
                break
            except OSError:
                sock.close()
                _log.info("Waiting to connect...")
                time.sleep(self.retry_interval)
        self._terminate.clear()
        self._sock = sock

    def _connection(self) -> socket.socket:
        if self._sock is None:
            raise RuntimeError("client is not connected")
        return self._sock

    def _trace(self, mark: str) -> None:
        if self.verbose:
            sys.stdout.write(mark)
            sys.stdout.flush()

    def _payload(self, index: int) -> bytes:
        values = list(self.data_source.sample(index, 0))[:SEQUENCE_LENGTH]
        if len(values) < SEQUENCE_LENGTH:
            raise ValueError(
                f"sample {index} holds {len(values)} values, need {SEQUENCE_LENGTH}"
            )
        return array("Q", (int(v) & _U64_MASK for v in values)).tobytes()

    def inference(self, samples: Iterable[Any]) -> None:
        """Send each sample's id and input ids; responses arrive asynchronously."""
        sock = self._connection()
        with self._send_lock:
            for sample in samples:
                message = _HEADER.pack(sample.id) + self._payload(sample.index)
                sock.sendall(message)
                self.sent += 1
                self._trace(">")
        self._start_receiver()

    def _start_receiver(self) -> None:
        if self._receiver is None or not self._receiver.is_alive():
            self._receiver = threading.Thread(
                target=self._receive_loop, name="kilt-client-receiver", daemon=True
            )
            self._receiver.start()

    def _receive_loop(self) -> None:
        while not self._terminate.is_set():
            try:
                self.receive_one()
            except (OSError, RuntimeError) as exc:
                if not self._terminate.is_set():
                    _log.error("receiver stopped: %s", exc)
                break

    def unique_server_id(self) -> str:
        """Ask the server for its identifier."""
        sock = self._connection()
        with self._send_lock:
            sock.sendall(_HEADER.pack(REQUEST_UID))
            data = read_exact(sock, UID_SIZE)
        self.uid = data.split(b"\0", 1)[0].decode("utf-8", errors="replace")
        _log.info("UID: %s", self.uid)
        return self.uid

    def receive_one(self) -> Response:
        """Read one response, report it through ``complete`` and return it."""
        sock = self._connection()
        header = read_exact(sock, _HEADER.size)
        body = read_exact(sock, _RESPONSE_SIZE)
        values = array("f")
        values.frombytes(body)
        response = (_HEADER.unpack(header)[0], values.tolist())
        self.received += 1
        self.complete([response])
        self._trace("<")
        return response

    def load_next_batch(self, user: Any) -> None:
        self.data_source.load_samples(user)

    def unload_batch(self, user: Any) -> None:
        self.data_source.unload_samples(user)

    def available_samples_max(self) -> int:
        return self.data_source.available_sample_count()

    def samples_in_memory_max(self) -> int:
        return self.data_source.max_samples_in_memory()

    def close(self) -> None:
        """Tell the server to detach and close the connection."""
        self._terminate.set()
        sock = self._sock
        if sock is None:
            return
        self._sock = None
        try:
            with self._send_lock:
                sock.sendall(_HEADER.pack(DISCONNECT))
        except OSError:
            pass
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()