"""Shared fixtures for reporter tests"""
import socket
from typing import List, Optional

import pytest

from metrics.models import Sample, SampleType


class RecordingClient:
    """Statsd client stand-in that keeps rendered lines in memory"""

    def __init__(self):
        self.namespace = ""
        self.send_errors = 0
        self.lines: List[str] = []
        self.flushes = 0
        self.closed = False

    def count(self, name: str, value: int, tags: Optional[List[str]] = None, rate: float = 1) -> bool:
        self.lines.append(Sample(name, value, SampleType.COUNT, tags, rate).to_line(self.namespace))
        return True

    def gauge(self, name: str, value: float, tags: Optional[List[str]] = None, rate: float = 1) -> bool:
        self.lines.append(Sample(name, value, SampleType.GAUGE, tags, rate).to_line(self.namespace))
        return True

    def flush(self) -> bool:
        self.flushes += 1
        return True

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class UDPServer:
    """Loopback UDP socket collecting datagrams"""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(1.0)
        self.address = "127.0.0.1:%d" % self.sock.getsockname()[1]

    def receive(self) -> str:
        data, _ = self.sock.recvfrom(65535)
        return data.decode("utf-8")

    def receive_many(self, n: int) -> List[str]:
        return [self.receive() for _ in range(n)]

    def close(self):
        self.sock.close()


@pytest.fixture
def recording_client():
    return RecordingClient()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def udp_server():
    server = UDPServer()
    yield server
    server.close()
