"""Pytest configuration and shared fixtures."""

import json
import struct
from unittest.mock import MagicMock

import pytest


class FakeStream:
    """In-memory streaming response delivering its body in fixed chunks."""

    def __init__(self, body: bytes = b'', chunk_size: int = 0, chunks=None):
        if chunks is None:
            size = chunk_size or max(len(body), 1)
            chunks = [body[i:i + size] for i in range(0, len(body), size)]
        self._chunks = list(chunks)
        self._buffer = b''
        self.closed = False
        self.timeout = 'unset'

    def read1(self, amt: int = 8192) -> bytes:
        if self.closed:
            return b''
        if not self._buffer:
            if not self._chunks:
                return b''
            self._buffer = self._chunks.pop(0)
        data, self._buffer = self._buffer[:amt], self._buffer[amt:]
        return data

    def read(self, amt=None) -> bytes:
        out = b''
        while amt is None or len(out) < amt:
            data = self.read1(8192 if amt is None else amt - len(out))
            if not data:
                break
            out += data
        return out

    def set_timeout(self, timeout):
        self.timeout = timeout

    def close(self):
        self.closed = True


def log_frame(stream: int, data: bytes) -> bytes:
    """Encode one multiplexed log frame."""
    return struct.pack('>BxxxL', stream, len(data)) + data


def json_lines(*objects) -> bytes:
    return b''.join(json.dumps(obj).encode('utf-8') + b'\r\n' for obj in objects)


@pytest.fixture
def api_client():
    """Client double whose http attribute records requests."""
    client = MagicMock()
    client.http = MagicMock()
    client.http.timeout = 60
    return client


@pytest.fixture
def clean_env(monkeypatch):
    """Remove DOCKER_* variables that would leak into configuration."""
    for name in ('DOCKER_HOST', 'DOCKER_API_VERSION', 'DOCKER_TLS_VERIFY',
                 'DOCKER_CERT_PATH', 'DOCKER_CLIENT_TIMEOUT', 'DOCKERLINK_LOG_LEVEL'):
        monkeypatch.delenv(name, raising=False)
