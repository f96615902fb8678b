"""UDP transport: socket ownership, background listener and response correlation."""
from __future__ import annotations

import contextlib
import logging
import queue
import socket
import threading
import time
from typing import Optional, Tuple

from .errors import ResponseTimeout, TransportError
from .frame import response_type, validate_checksum

_LOGGER = logging.getLogger(__name__)

Address = Tuple[str, int]

DEFAULT_PORT: int = 80
DEFAULT_QUEUE_SIZE: int = 1000
DEFAULT_RECEIVE_BUFFER: int = 2048

# Pause after pushing back a mismatched frame so the wait does not spin on it.
_REQUEUE_BACKOFF: float = 0.005


def resolve_address(host: str, port: int = DEFAULT_PORT) -> Address:
    """Resolve ``host`` to an IPv4 UDP address."""

    try:
        infos = socket.getaddrinfo(host, port, socket.AF_INET, socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as exc:
        raise TransportError(f"Unable to resolve {host}:{port}: {exc}") from exc
    if not infos:
        raise TransportError(f"Unable to resolve {host}:{port}")
    address = infos[0][4]
    return (address[0], address[1])


class UdpTransport:
    """Owns one UDP socket and the thread that drains it into a bounded queue.

    Only checksum-valid frames reach the queue; anything else is dropped
    silently. Callers retrieve frames either unconditionally (:meth:`recv`) or
    filtered by response type (:meth:`wait_for_type`).
    """

    def __init__(
        self,
        remote: Address,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        receive_buffer: int = DEFAULT_RECEIVE_BUFFER,
        poll_interval: float = 0.5,
        source_address: Optional[Address] = None,
    ) -> None:
        self._remote = remote
        self._receive_buffer = receive_buffer
        self._poll_interval = max(poll_interval, 0.01)
        self._source_address = source_address
        self._responses: "queue.Queue[bytes]" = queue.Queue(maxsize=queue_size)
        self._sock: Optional[socket.socket] = None
        self._listener: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def remote(self) -> Address:
        return self._remote

    @property
    def closed(self) -> bool:
        return self._sock is None

    @property
    def local_address(self) -> Address:
        if self._sock is None:
            raise TransportError("Transport is closed")
        return self._sock.getsockname()[:2]

    def pending(self) -> int:
        """Approximate number of frames waiting in the queue."""

        return self._responses.qsize()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def open(self) -> None:
        if self._sock is not None:
            return
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        except OSError as exc:
            raise TransportError(f"Unable to create UDP socket: {exc}") from exc
        try:
            sock.bind(self._source_address or ("0.0.0.0", 0))
            sock.settimeout(self._poll_interval)
        except OSError as exc:
            sock.close()
            raise TransportError(f"Unable to bind UDP socket: {exc}") from exc
        self._sock = sock
        self._stop_event.clear()
        listener = threading.Thread(
            target=self._listen_loop,
            args=(sock,),
            name="pybroadlink-listener",
            daemon=True,
        )
        listener.start()
        self._listener = listener
        _LOGGER.debug("Listening on %s:%s for %s:%s", *sock.getsockname()[:2], *self._remote)

    def close(self) -> None:
        self._stop_event.set()
        sock, self._sock = self._sock, None
        if sock is not None:
            with contextlib.suppress(OSError):
                sock.close()
        listener, self._listener = self._listener, None
        if listener is not None and listener is not threading.current_thread():
            listener.join(timeout=self._poll_interval + 1.0)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------
    def send(self, datagram: bytes, address: Optional[Address] = None) -> None:
        sock = self._sock
        if sock is None:
            raise TransportError("Transport is closed")
        try:
            sock.sendto(datagram, address or self._remote)
        except OSError as exc:
            raise TransportError(f"Send failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------
    def _listen_loop(self, sock: socket.socket) -> None:
        while not self._stop_event.is_set():
            try:
                data, addr = sock.recvfrom(self._receive_buffer)
            except socket.timeout:
                continue
            except OSError as exc:
                if self._stop_event.is_set() or sock.fileno() == -1:
                    break
                _LOGGER.debug("Receive error ignored: %s", exc)
                continue
            if not validate_checksum(data):
                _LOGGER.debug(
                    "Discarding %d byte datagram with bad checksum from %s:%s",
                    len(data),
                    addr[0],
                    addr[1],
                )
                continue
            self._enqueue(data)
        _LOGGER.debug("Listener stopped")

    def _enqueue(self, frame: bytes) -> None:
        try:
            self._responses.put_nowait(frame)
        except queue.Full:
            _LOGGER.warning("Pending-response queue full; dropping %d byte frame", len(frame))

    def recv(self, timeout: float) -> bytes:
        """Return the next queued frame, whatever its type."""

        try:
            return self._responses.get(timeout=max(timeout, 0.0))
        except queue.Empty:
            raise ResponseTimeout(timeout) from None

    def wait_for_type(self, expected_type: int, timeout: float) -> bytes:
        """Return the first queued frame whose response type is ``expected_type``.

        Frames of other types are pushed back to the tail of the queue. A frame
        that keeps reappearing at the head can starve the wait until the
        deadline passes.
        """

        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ResponseTimeout(timeout, expected_type)
            try:
                frame = self._responses.get(timeout=remaining)
            except queue.Empty:
                raise ResponseTimeout(timeout, expected_type) from None
            if response_type(frame) == expected_type:
                return frame
            self._enqueue(frame)
            if time.monotonic() >= deadline:
                raise ResponseTimeout(timeout, expected_type)
            time.sleep(_REQUEUE_BACKOFF)


__all__ = [
    "Address",
    "DEFAULT_PORT",
    "DEFAULT_QUEUE_SIZE",
    "UdpTransport",
    "resolve_address",
]
