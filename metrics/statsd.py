"""dogstatsd UDP clients"""
import socket
import threading
from typing import List, Optional, Tuple

from .models import Sample, SampleType
from logging_config import get_logger


logger = get_logger(__name__)


class StatsdConnectionError(ConnectionError):
    """The statsd destination could not be parsed, resolved or bound"""


def parse_address(address: str) -> Tuple[str, int]:
    """Split "host:port" (or "[v6]:port") into host and port"""
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise StatsdConnectionError(f"Invalid statsd address {address!r}: missing port")
    host = host.strip("[]")
    try:
        port_number = int(port)
    except ValueError:
        raise StatsdConnectionError(f"Invalid statsd address {address!r}: bad port {port!r}") from None
    if not 0 < port_number < 65536:
        raise StatsdConnectionError(f"Invalid statsd address {address!r}: port out of range")
    return host, port_number


class StatsdClient:
    """Unbuffered client: every sample is sent as its own datagram"""

    def __init__(self, address: str, namespace: str = ""):
        self.address = address
        self.namespace = namespace
        self.send_errors = 0
        self._lock = threading.Lock()
        self._sock = self._connect(address)

    @staticmethod
    def _connect(address: str) -> socket.socket:
        host, port = parse_address(address)
        try:
            infos = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
        except socket.gaierror as e:
            raise StatsdConnectionError(f"Unable to resolve statsd address {address!r}: {e}") from e

        last_error = None
        for family, socktype, proto, _, sockaddr in infos:
            sock = socket.socket(family, socktype, proto)
            try:
                sock.connect(sockaddr)
                return sock
            except OSError as e:
                sock.close()
                last_error = e

        raise StatsdConnectionError(f"Unable to connect to statsd at {address!r}: {last_error}")

    def count(self, name: str, value: int, tags: Optional[List[str]] = None, rate: float = 1) -> bool:
        """Submit a count-type sample"""
        return self.submit(Sample(name, value, SampleType.COUNT, tags, rate))

    def gauge(self, name: str, value: float, tags: Optional[List[str]] = None, rate: float = 1) -> bool:
        """Submit a gauge-type sample"""
        return self.submit(Sample(name, value, SampleType.GAUGE, tags, rate))

    def submit(self, sample: Sample) -> bool:
        return self._send(sample.to_line(self.namespace))

    def _send(self, payload: str) -> bool:
        with self._lock:
            try:
                self._sock.send(payload.encode("utf-8"))
                return True
            except OSError as e:
                self.send_errors += 1
                logger.warning(
                    "Failed to send statsd payload",
                    address=self.address,
                    error=str(e),
                    send_errors=self.send_errors,
                    event_type="statsd_send_error",
                )
                return False

    def flush(self) -> bool:
        """Nothing is ever pending on an unbuffered client"""
        return True

    def close(self) -> None:
        with self._lock:
            self._sock.close()


class BufferedStatsdClient(StatsdClient):
    """Client that packs up to buffer_length lines into one datagram"""

    def __init__(self, address: str, buffer_length: int, namespace: str = ""):
        if buffer_length < 1:
            raise ValueError("buffer_length must be positive")
        super().__init__(address, namespace)
        self.buffer_length = buffer_length
        self._buffer: List[str] = []
        self._buffer_lock = threading.Lock()

    def submit(self, sample: Sample) -> bool:
        with self._buffer_lock:
            self._buffer.append(sample.to_line(self.namespace))
            if len(self._buffer) < self.buffer_length:
                return True
            return self._drain()

    def flush(self) -> bool:
        """Send whatever is pending"""
        with self._buffer_lock:
            if not self._buffer:
                return True
            return self._drain()

    def pending(self) -> int:
        with self._buffer_lock:
            return len(self._buffer)

    def _drain(self) -> bool:
        payload = "\n".join(self._buffer)
        self._buffer = []
        return self._send(payload)

    def close(self) -> None:
        self.flush()
        super().close()
