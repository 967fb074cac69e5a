"""
Streaming responses - image pull progress and container logs.

A long-running request is wrapped in a StreamTask which decodes the chunked
body into items and hands them to a StreamHandler:
    
    on_start(task) -> on_item(item) ... -> on_error(exc) | on_complete()

Items are delivered in the order the bytes arrived. There is no retry and no
backpressure; closing the task closes the connection and ends the stream.
"""

import codecs
import json
import logging
import struct
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from .exceptions import DockerException

logger = logging.getLogger(__name__)

STDIN = 0
STDOUT = 1
STDERR = 2
STREAM_NAMES = {STDIN: 'stdin', STDOUT: 'stdout', STDERR: 'stderr'}
RAW = 'raw'

_HEADER_SIZE = 8
_HEADER = struct.Struct('>BxxxL')


class StreamHandler:
    """Receives the lifecycle of one stream; override the hooks you need"""
    
    def on_start(self, task: 'StreamTask'):
        pass
    
    def on_item(self, item: Any):
        pass
    
    def on_error(self, error: BaseException):
        pass
    
    def on_complete(self):
        pass


class CallbackHandler(StreamHandler):
    """StreamHandler built from plain callables"""
    
    def __init__(self, on_item: Optional[Callable[[Any], None]] = None,
                 on_start: Optional[Callable[['StreamTask'], None]] = None,
                 on_error: Optional[Callable[[BaseException], None]] = None,
                 on_complete: Optional[Callable[[], None]] = None):
        self._on_item = on_item
        self._on_start = on_start
        self._on_error = on_error
        self._on_complete = on_complete
    
    def on_start(self, task):
        if self._on_start:
            self._on_start(task)
    
    def on_item(self, item):
        if self._on_item:
            self._on_item(item)
    
    def on_error(self, error):
        if self._on_error:
            self._on_error(error)
    
    def on_complete(self):
        if self._on_complete:
            self._on_complete()


class CollectingHandler(StreamHandler):
    """Keeps every item; handy for tests and small log snapshots"""
    
    def __init__(self):
        self.items: List[Any] = []
        self.error: Optional[BaseException] = None
        self.completed = False
    
    def on_item(self, item):
        self.items.append(item)
    
    def on_error(self, error):
        self.error = error
    
    def on_complete(self):
        self.completed = True


@dataclass
class LogFrame:
    """One chunk of container output"""
    stream: str
    data: bytes
    
    @property
    def text(self) -> str:
        return self.data.decode('utf-8', errors='replace')
    
    def __str__(self):
        return self.text


class LogTextDecoder:
    """
    Turns followed LogFrames into text
    
    Frames do not respect character boundaries, so each stream keeps its own
    incremental UTF-8 decoder; a character split across frames comes out whole.
    """
    
    def __init__(self):
        self._decoders: Dict[str, Any] = {}
    
    def decode(self, frame: LogFrame) -> str:
        decoder = self._decoders.get(frame.stream)
        if decoder is None:
            decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
            self._decoders[frame.stream] = decoder
        return decoder.decode(frame.data)
    
    def flush(self) -> str:
        """Text still held back at end of stream (truncated characters)"""
        text = ''.join(decoder.decode(b'', final=True) for decoder in self._decoders.values())
        self._decoders.clear()
        return text


@dataclass
class PullProgress:
    """One progress message from an image pull"""
    status: str = ''
    id: Optional[str] = None
    progress: Optional[str] = None
    current: Optional[int] = None
    total: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)
    
    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'PullProgress':
        detail = data.get('progressDetail') or {}
        return cls(
            status=data.get('status', ''),
            id=data.get('id'),
            progress=data.get('progress'),
            current=detail.get('current'),
            total=detail.get('total'),
            raw=data,
        )
    
    @property
    def percent(self) -> Optional[float]:
        if self.current is None or not self.total:
            return None
        return min(100.0, 100.0 * self.current / self.total)
    
    def __str__(self):
        text = f"{self.id}: {self.status}" if self.id else self.status
        if self.progress:
            text += f" {self.progress}"
        return text


def _iter_chunks(response, chunk_size: int = 8192) -> Iterator[bytes]:
    while True:
        chunk = response.read1(chunk_size)
        if not chunk:
            break
        yield chunk


def _read_exact(response, size: int) -> bytes:
    """Read size bytes, or fewer only when the body ends"""
    buf = b''
    while len(buf) < size:
        chunk = response.read(size - len(buf))
        if not chunk:
            break
        buf += chunk
    return buf


def iter_json_stream(response, chunk_size: int = 8192) -> Iterator[Dict[str, Any]]:
    """
    Decode a body of concatenated JSON objects
    
    The daemon writes one object per progress update, but chunk boundaries
    can fall anywhere, including inside a multi-byte UTF-8 character.
    """
    decoder = json.JSONDecoder()
    text_decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
    buffer = ''
    
    for chunk in _iter_chunks(response, chunk_size):
        buffer += text_decoder.decode(chunk)
        while True:
            buffer = buffer.lstrip()
            if not buffer:
                break
            try:
                obj, end = decoder.raw_decode(buffer)
            except json.JSONDecodeError:
                break  # incomplete object, wait for more data
            buffer = buffer[end:]
            yield obj
    
    buffer = (buffer + text_decoder.decode(b'', final=True)).strip()
    if buffer:
        raise DockerException(f"Stream ended with incomplete JSON: {buffer[:80]!r}")


def _looks_like_header(header: bytes) -> bool:
    return (len(header) == _HEADER_SIZE
            and header[0] in STREAM_NAMES
            and header[1:4] == b'\x00\x00\x00')


def iter_log_frames(response, tty: Optional[bool] = None,
                    chunk_size: int = 8192) -> Iterator[LogFrame]:
    """
    Decode a container output stream
    
    Without a TTY the daemon multiplexes stdout and stderr: every frame starts
    with an 8-byte header (stream type, three zero bytes, big-endian payload
    length). With a TTY the body is the raw terminal output.
    
    Args:
        response: Streaming response
        tty: Whether the container has a TTY; None sniffs the first header
    """
    if tty:
        for chunk in _iter_chunks(response, chunk_size):
            yield LogFrame(RAW, chunk)
        return
    
    header = _read_exact(response, _HEADER_SIZE)
    if not header:
        return
    
    if tty is None and not _looks_like_header(header):
        yield LogFrame(RAW, header)
        for chunk in _iter_chunks(response, chunk_size):
            yield LogFrame(RAW, chunk)
        return
    
    while header:
        if len(header) < _HEADER_SIZE:
            raise DockerException("Log stream ended inside a frame header")
        stream_type, size = _HEADER.unpack(header)
        data = _read_exact(response, size)
        if len(data) < size:
            raise DockerException(f"Log frame truncated: expected {size} bytes, got {len(data)}")
        if data:
            yield LogFrame(STREAM_NAMES.get(stream_type, RAW), data)
        header = _read_exact(response, _HEADER_SIZE)


class StreamTask:
    """
    A streaming request whose items are pushed to a handler
    
    Args:
        open_stream: Callable sending the request and returning the open response
        decode: Turns the response into an iterable of items
        handler: Receives lifecycle hooks (default: items are dropped)
        finalize: Called after a clean end of stream; its return value is the
            task result (e.g. the pulled Image)
        name: Thread name
    """
    
    def __init__(self, open_stream: Callable[[], Any],
                 decode: Callable[[Any], Iterable[Any]],
                 handler: Optional[StreamHandler] = None,
                 finalize: Optional[Callable[[], Any]] = None,
                 name: str = 'docker-stream'):
        self._open_stream = open_stream
        self._decode = decode
        self.handler = handler or StreamHandler()
        self._finalize = finalize
        self.name = name
        
        self._response = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._started = False
        self._cancelled = False
        self._done = threading.Event()
        self._result: Any = None
        self._error: Optional[BaseException] = None
    
    def __repr__(self):
        state = 'done' if self.done else ('running' if self._started else 'pending')
        return f"<StreamTask: {self.name} {state}>"
    
    @property
    def done(self) -> bool:
        return self._done.is_set()
    
    @property
    def cancelled(self) -> bool:
        return self._cancelled
    
    @property
    def error(self) -> Optional[BaseException]:
        return self._error
    
    def start(self) -> 'StreamTask':
        """Run the stream in a background thread"""
        self._mark_started()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        return self
    
    def run(self) -> 'StreamTask':
        """Run the stream in the calling thread, returning when it ends"""
        self._mark_started()
        self._run()
        return self
    
    def _mark_started(self):
        with self._lock:
            if self._started:
                raise RuntimeError(f"{self.name} already started")
            self._started = True
    
    def _run(self):
        try:
            self.handler.on_start(self)
            response = self._open_stream()
            with self._lock:
                self._response = response
                cancelled = self._cancelled
            if cancelled:
                response.close()
            else:
                for item in self._decode(response):
                    if self._cancelled:
                        break
                    self.handler.on_item(item)
                if self._finalize and not self._cancelled:
                    self._result = self._finalize()
        except Exception as e:
            if self._cancelled:
                # Closing the socket makes the blocked reader fail; that is the normal way out
                logger.debug(f"{self.name} closed: {e}")
                self._complete()
            else:
                self._fail(e)
        else:
            self._complete()
        finally:
            self._close_response()
            self._done.set()
    
    def _complete(self):
        try:
            self.handler.on_complete()
        except Exception as e:
            logger.exception(f"{self.name}: completion handler failed")
            self._error = e
    
    def _fail(self, error: Exception):
        self._error = error
        logger.debug(f"{self.name} failed: {error}")
        try:
            self.handler.on_error(error)
        except Exception:
            logger.exception(f"{self.name}: error handler failed")
    
    def _close_response(self):
        with self._lock:
            response, self._response = self._response, None
        if response is not None:
            response.close()
    
    def close(self):
        """Cancel the stream by closing its connection"""
        with self._lock:
            self._cancelled = True
            response = self._response
        if response is not None:
            response.close()
    
    cancel = close
    
    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the stream ends; False if the timeout expired first"""
        return self._done.wait(timeout)
    
    def result(self, timeout: Optional[float] = None) -> Any:
        """
        Wait for the stream and return its result
        
        Raises:
            TimeoutError: Still running after timeout
            The stream's error, if it failed
        """
        if not self.wait(timeout):
            raise TimeoutError(f"{self.name} still running after {timeout}s")
        if self._error is not None:
            raise self._error
        return self._result
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        if self._started:
            self.wait()
