"""Unit tests for stream decoding and StreamTask lifecycle."""

import threading

import pytest

from dockerlink.docker_api.exceptions import DockerException
from dockerlink.docker_api.streams import (
    CallbackHandler,
    CollectingHandler,
    LogFrame,
    LogTextDecoder,
    PullProgress,
    StreamHandler,
    StreamTask,
    iter_json_stream,
    iter_log_frames,
)
from tests.conftest import FakeStream, json_lines, log_frame


class RecordingHandler(StreamHandler):
    """Records hook calls in order."""

    def __init__(self):
        self.events = []

    def on_start(self, task):
        self.events.append('start')

    def on_item(self, item):
        self.events.append(('item', item))

    def on_error(self, error):
        self.events.append(('error', error))

    def on_complete(self):
        self.events.append('complete')


class BlockingStream(FakeStream):
    """Delivers its chunks, then blocks like an idle followed stream until closed."""

    def __init__(self, *chunks):
        super().__init__(chunks=chunks)
        self.released = threading.Event()

    def read1(self, amt=8192):
        data = super().read1(amt)
        if data:
            return data
        self.released.wait(5)
        raise OSError('socket closed')

    def close(self):
        super().close()
        self.released.set()


class TestJsonStream:
    """Tests for iter_json_stream."""

    def test_objects_split_across_chunks(self):
        body = json_lines(
            {'status': 'Pulling from library/alpine', 'id': '3.19'},
            {'status': 'Downloading', 'id': 'abc', 'progressDetail': {'current': 5, 'total': 10}},
            {'status': 'Status: Downloaded newer image for alpine:3.19'},
        )

        items = list(iter_json_stream(FakeStream(body, chunk_size=7)))

        assert [item['status'] for item in items] == [
            'Pulling from library/alpine',
            'Downloading',
            'Status: Downloaded newer image for alpine:3.19',
        ]

    def test_several_objects_in_one_chunk(self):
        body = b'{"a": 1}{"b": 2}\n{"c": 3}'

        assert list(iter_json_stream(FakeStream(body))) == [{'a': 1}, {'b': 2}, {'c': 3}]

    def test_multibyte_character_split(self):
        body = '{"status": "café"}'.encode('utf-8')
        split = body.index(b'\xc3') + 1

        items = list(iter_json_stream(FakeStream(chunks=[body[:split], body[split:]])))

        assert items == [{'status': 'café'}]

    def test_truncated_object(self):
        with pytest.raises(DockerException, match='incomplete JSON'):
            list(iter_json_stream(FakeStream(b'{"status": "Down')))

    def test_empty_body(self):
        assert list(iter_json_stream(FakeStream(b''))) == []


class TestLogFrames:
    """Tests for iter_log_frames."""

    def test_demultiplex_preserves_order(self):
        body = (log_frame(1, b'starting\n') + log_frame(2, b'warning: x\n')
                + log_frame(1, b'ready\n'))

        frames = list(iter_log_frames(FakeStream(body, chunk_size=3)))

        assert frames == [
            LogFrame('stdout', b'starting\n'),
            LogFrame('stderr', b'warning: x\n'),
            LogFrame('stdout', b'ready\n'),
        ]

    def test_empty_frames_skipped(self):
        body = log_frame(1, b'') + log_frame(1, b'x')

        assert list(iter_log_frames(FakeStream(body))) == [LogFrame('stdout', b'x')]

    def test_tty_stream_is_raw(self):
        body = b'\x1b[32mhello\x1b[0m\r\n'

        frames = list(iter_log_frames(FakeStream(body, chunk_size=4), tty=True))

        assert all(frame.stream == 'raw' for frame in frames)
        assert b''.join(frame.data for frame in frames) == body

    def test_raw_stream_detected(self):
        body = b'plain terminal output\n'

        frames = list(iter_log_frames(FakeStream(body, chunk_size=5)))

        assert all(frame.stream == 'raw' for frame in frames)
        assert b''.join(frame.data for frame in frames) == body

    def test_short_raw_stream_detected(self):
        assert list(iter_log_frames(FakeStream(b'hi\n'))) == [LogFrame('raw', b'hi\n')]

    def test_truncated_payload(self):
        body = log_frame(1, b'complete line\n')[:-3]

        with pytest.raises(DockerException, match='truncated'):
            list(iter_log_frames(FakeStream(body)))

    def test_truncated_header(self):
        body = log_frame(1, b'a') + b'\x01\x00\x00'

        with pytest.raises(DockerException, match='header'):
            list(iter_log_frames(FakeStream(body), tty=False))

    def test_frame_text(self):
        assert LogFrame('stdout', 'hé'.encode('utf-8')).text == 'hé'


class TestLogTextDecoder:
    """Tests for LogTextDecoder."""

    def test_character_split_across_frames(self):
        decoder = LogTextDecoder()
        data = 'café ✓\n'.encode('utf-8')

        text = decoder.decode(LogFrame('stdout', data[:4])) + decoder.decode(LogFrame('stdout', data[4:8]))
        text += decoder.decode(LogFrame('stdout', data[8:]))

        assert text == 'café ✓\n'
        assert '\ufffd' not in text

    def test_streams_decoded_separately(self):
        decoder = LogTextDecoder()
        e_acute = 'é'.encode('utf-8')

        first = decoder.decode(LogFrame('stdout', e_acute[:1]))
        other = decoder.decode(LogFrame('stderr', b'warn\n'))
        second = decoder.decode(LogFrame('stdout', e_acute[1:]))

        assert (first, other, second) == ('', 'warn\n', 'é')

    def test_flush_truncated_character(self):
        decoder = LogTextDecoder()

        assert decoder.decode(LogFrame('stdout', b'ok\xe2\x9c')) == 'ok'
        assert decoder.flush() == '\ufffd'
        assert decoder.flush() == ''


class TestPullProgress:
    """Tests for PullProgress."""

    def test_from_api(self):
        progress = PullProgress.from_api({
            'status': 'Downloading',
            'id': 'a1b2',
            'progress': '[=>   ] 5B/10B',
            'progressDetail': {'current': 5, 'total': 10},
        })

        assert progress.percent == 50.0
        assert str(progress) == 'a1b2: Downloading [=>   ] 5B/10B'

    def test_without_detail(self):
        progress = PullProgress.from_api({'status': 'Digest: sha256:abc'})

        assert progress.percent is None
        assert str(progress) == 'Digest: sha256:abc'


class TestStreamTask:
    """Tests for StreamTask lifecycle."""

    def test_hooks_in_order(self):
        handler = RecordingHandler()
        body = json_lines({'n': 1}, {'n': 2})

        task = StreamTask(lambda: FakeStream(body), iter_json_stream, handler=handler)
        task.run()

        assert handler.events == ['start', ('item', {'n': 1}), ('item', {'n': 2}), 'complete']
        assert task.done
        assert task.error is None

    def test_finalize_result(self):
        task = StreamTask(lambda: FakeStream(b''), iter_json_stream, finalize=lambda: 'pulled')

        assert task.run().result() == 'pulled'

    def test_decode_error_goes_to_error_hook(self):
        handler = RecordingHandler()

        task = StreamTask(lambda: FakeStream(b'{"n": 1}{"n"'), iter_json_stream, handler=handler,
                          finalize=lambda: pytest.fail('finalize must not run'))
        task.run()

        assert handler.events[:2] == ['start', ('item', {'n': 1})]
        assert handler.events[2][0] == 'error'
        assert 'complete' not in handler.events
        with pytest.raises(DockerException):
            task.result()

    def test_open_failure(self):
        handler = RecordingHandler()
        error = DockerException('daemon unreachable')

        def open_stream():
            raise error

        task = StreamTask(open_stream, iter_json_stream, handler=handler).run()

        assert handler.events == ['start', ('error', error)]
        assert task.error is error

    def test_item_handler_failure_fails_stream(self):
        stream = FakeStream(json_lines({'n': 1}, {'n': 2}))

        def boom(item):
            raise ValueError('bad item')

        collector = CollectingHandler()
        handler = CallbackHandler(on_item=boom, on_error=collector.on_error)
        task = StreamTask(lambda: stream, iter_json_stream, handler=handler).run()

        assert isinstance(collector.error, ValueError)
        assert stream.closed
        with pytest.raises(ValueError):
            task.result()

    def test_response_closed_after_completion(self):
        stream = FakeStream(json_lines({'n': 1}))

        StreamTask(lambda: stream, iter_json_stream).run()

        assert stream.closed

    def test_background_thread(self):
        collector = CollectingHandler()

        task = StreamTask(lambda: FakeStream(json_lines({'n': 1})), iter_json_stream,
                          handler=collector, finalize=lambda: 42).start()

        assert task.result(timeout=5) == 42
        assert collector.items == [{'n': 1}]
        assert collector.completed

    def test_close_cancels_running_stream(self):
        stream = BlockingStream(b'{"status": "first"}')
        seen = threading.Event()
        collector = CollectingHandler()

        def on_item(item):
            collector.on_item(item)
            seen.set()

        handler = CallbackHandler(on_item=on_item, on_error=collector.on_error,
                                  on_complete=collector.on_complete)
        task = StreamTask(lambda: stream, iter_json_stream, handler=handler,
                          finalize=lambda: 'unused').start()

        assert seen.wait(5)
        task.close()

        assert task.wait(5)
        assert task.cancelled
        assert collector.completed
        assert collector.error is None
        assert collector.items == [{'status': 'first'}]
        assert task.result() is None
        assert stream.closed

    def test_close_before_open(self):
        stream = FakeStream(json_lines({'n': 1}))
        collector = CollectingHandler()
        task = StreamTask(lambda: stream, iter_json_stream, handler=collector)

        task.close()
        task.run()

        assert collector.items == []
        assert collector.completed
        assert stream.closed

    def test_result_timeout(self):
        task = StreamTask(lambda: FakeStream(b''), iter_json_stream)

        with pytest.raises(TimeoutError):
            task.result(timeout=0.01)

    def test_cannot_start_twice(self):
        task = StreamTask(lambda: FakeStream(b''), iter_json_stream).run()

        with pytest.raises(RuntimeError):
            task.run()

    def test_context_manager_waits(self):
        with StreamTask(lambda: FakeStream(json_lines({'n': 1})), iter_json_stream).start() as task:
            pass

        assert task.done
