"""
Background threads for streaming Docker operations in Qt applications

The Docker streams run inside QThread.run(); every stream item is re-emitted
as a Qt signal so widgets can be updated from the GUI thread.
"""

import logging
from typing import Optional, Union

from PyQt6.QtCore import QThread, pyqtSignal

from ..docker_api.streams import LogTextDecoder, StreamHandler, StreamTask

logger = logging.getLogger(__name__)


class _SignalHandler(StreamHandler):
    """Forwards stream items to a Qt signal"""
    
    def __init__(self, thread: 'StreamThread'):
        self.thread = thread
    
    def on_item(self, item):
        self.thread.emit_item(item)


class StreamThread(QThread):
    """Base thread running one StreamTask"""
    finished_signal = pyqtSignal(bool, str)  # success, message
    
    def __init__(self, client, parent=None):
        super().__init__(parent)
        self.client = client
        self.task: Optional[StreamTask] = None
        self._stopped = False
    
    def open_task(self, handler: StreamHandler) -> StreamTask:
        raise NotImplementedError
    
    def emit_item(self, item):
        raise NotImplementedError
    
    def flush(self):
        """Emit anything buffered once the stream has ended"""
        pass
    
    def success_message(self, result) -> str:
        return "Done"
    
    def run(self):
        """Run the stream until it ends or stop() is called"""
        try:
            task = self.open_task(_SignalHandler(self))
            self.task = task
            if self._stopped:
                task.close()
            task.run()
            self.flush()
            result = task.result()
        except Exception as e:
            logger.error(f"{type(self).__name__} error: {e}")
            self.finished_signal.emit(False, f"Error: {e}")
            return
        
        if task.cancelled:
            self.finished_signal.emit(True, "Stopped")
        else:
            self.finished_signal.emit(True, self.success_message(result))
    
    def stop(self):
        """Stop the stream (closes the connection)"""
        self._stopped = True
        if self.task is not None:
            self.task.close()


class ImagePullThread(StreamThread):
    """Thread for pulling an image with live progress"""
    progress_signal = pyqtSignal(str)  # human readable progress line
    percent_signal = pyqtSignal(int)  # layer percent, when known
    
    def __init__(self, client, reference: str, platform: Optional[str] = None, parent=None):
        super().__init__(client, parent)
        self.reference = reference
        self.platform = platform
    
    def open_task(self, handler):
        return self.client.images.pull(
            self.reference, platform=self.platform, handler=handler, background=False
        )
    
    def emit_item(self, item):
        self.progress_signal.emit(str(item))
        if item.percent is not None:
            self.percent_signal.emit(int(item.percent))
    
    def success_message(self, result):
        return f"Pulled {self.reference} ({result.short_id})"


class ContainerLogsThread(StreamThread):
    """Thread for reading container logs in real-time"""
    log_line = pyqtSignal(str)  # Emits each log line
    
    def __init__(self, client, container_id: str, follow: bool = True,
                 tail: Union[str, int] = 'all', parent=None):
        super().__init__(client, parent)
        self.container_id = container_id
        self.follow = follow
        self.tail = tail
        self._partial = ''
        self._decoder = LogTextDecoder()
    
    def open_task(self, handler):
        return self.client.containers.stream_logs(
            self.container_id, handler=handler, follow=self.follow,
            tail=self.tail, background=False
        )
    
    def emit_item(self, item):
        # Frames do not follow line boundaries; emit whole lines only
        text = self._partial + self._decoder.decode(item)
        lines = text.split('\n')
        self._partial = lines.pop()
        for line in lines:
            self.log_line.emit(line.rstrip('\r'))
    
    def flush(self):
        self._partial += self._decoder.flush()
        if self._partial:
            self.log_line.emit(self._partial)
            self._partial = ''
    
    def success_message(self, result):
        return "Logs stream ended"
