"""
HTTP Client for the Docker daemon
Pure Python implementation using http.client over a unix socket, TCP or TLS
"""

import http.client
import json
import logging
import socket
import threading
from typing import Any, Dict, Optional
from urllib.parse import quote

from .endpoint import AUTO_VERSION, ClientConfig
from .exceptions import APIError, DockerConnectionError, NotFound

logger = logging.getLogger(__name__)

# Marks "use the client timeout"; None means no timeout at all
_DEFAULT_TIMEOUT = object()


class UnixHTTPConnection(http.client.HTTPConnection):
    """HTTP connection over Unix socket"""
    
    def __init__(self, socket_path: str, timeout: Optional[float] = 60):
        super().__init__('localhost', timeout=timeout)
        self.socket_path = socket_path
    
    def connect(self):
        """Connect to Unix socket"""
        self.sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        self.sock.settimeout(self.timeout)
        self.sock.connect(self.socket_path)


class StreamingResponse:
    """
    Open response body of a long-running request (pull progress, log tail)
    
    Owns the connection: close() tears down both the response and the socket,
    which is also how a running stream is cancelled.
    """
    
    def __init__(self, response: http.client.HTTPResponse, connection: http.client.HTTPConnection):
        self.response = response
        self.connection = connection
        self.status = response.status
        self.headers = response.headers
        self._closed = False
    
    @property
    def closed(self) -> bool:
        return self._closed
    
    @property
    def content_type(self) -> str:
        return self.headers.get('Content-Type', '') if self.headers else ''
    
    def set_timeout(self, timeout: Optional[float]):
        """Change the read timeout; None blocks until data arrives (followed logs)"""
        sock = getattr(self.connection, 'sock', None)
        if sock is not None:
            sock.settimeout(timeout)
    
    def read(self, amt: Optional[int] = None) -> bytes:
        """Read exactly amt bytes (fewer only at end of body)"""
        if self._closed:
            return b''
        return self.response.read(amt)
    
    def read1(self, amt: int = 8192) -> bytes:
        """Read whatever is available, up to amt bytes"""
        if self._closed:
            return b''
        return self.response.read1(amt)
    
    def readline(self) -> bytes:
        if self._closed:
            return b''
        return self.response.readline()
    
    def iter_chunks(self, chunk_size: int = 8192):
        """Yield body chunks in arrival order until EOF"""
        while True:
            chunk = self.read1(chunk_size)
            if not chunk:
                break
            yield chunk
    
    def close(self):
        if self._closed:
            return
        self._closed = True
        # Shut the socket down first so a reader blocked in recv() wakes up
        sock = getattr(self.connection, 'sock', None)
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        self.response.close()
        self.connection.close()
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
    
    def __iter__(self):
        return self.iter_chunks()


class DockerHTTPClient:
    """HTTP client for Docker daemon"""
    
    def __init__(self, config: Optional[ClientConfig] = None):
        """
        Initialize Docker HTTP client
        
        Args:
            config: Connection settings (default: from environment)
        """
        self.config = config or ClientConfig.from_env()
        self.endpoint = self.config.endpoint
        self.timeout = self.config.timeout
        self._ssl_context = self.config.ssl_context()
        self._api_version = self.config.api_version
        self._version_lock = threading.Lock()
    
    @property
    def base_url(self) -> str:
        return str(self.endpoint)
    
    @property
    def api_version(self) -> Optional[str]:
        """API version in use; negotiated with the daemon on first use for 'auto'"""
        if self._api_version == AUTO_VERSION:
            with self._version_lock:
                if self._api_version == AUTO_VERSION:
                    self._api_version = self._negotiate_version()
        return self._api_version
    
    def _negotiate_version(self) -> Optional[str]:
        data = self._send('GET', '/version', versioned=False)
        version = data.get('ApiVersion') if isinstance(data, dict) else None
        logger.info(f"Negotiated Docker API version: {version or 'daemon default'}")
        return version
    
    def _connect(self, timeout=_DEFAULT_TIMEOUT) -> http.client.HTTPConnection:
        """Create a connection for the configured endpoint (connects lazily)"""
        if timeout is _DEFAULT_TIMEOUT:
            timeout = self.timeout
        if self.endpoint.is_unix:
            return UnixHTTPConnection(self.endpoint.address, timeout=timeout)
        if self.endpoint.is_tls:
            return http.client.HTTPSConnection(
                self.endpoint.address, self.endpoint.port,
                timeout=timeout, context=self._ssl_context
            )
        return http.client.HTTPConnection(self.endpoint.address, self.endpoint.port, timeout=timeout)
    
    def build_url(self, path: str, params: Optional[Dict[str, Any]] = None,
                  versioned: bool = True) -> str:
        """Build request target: version prefix + path + query string"""
        url = path
        if versioned:
            version = self.api_version
            if version:
                url = f"/v{version}{path}"
        
        if params:
            query_parts = []
            for key, value in params.items():
                if value is None:
                    continue
                if isinstance(value, bool):
                    value = 'true' if value else 'false'
                elif isinstance(value, (list, dict)):
                    value = json.dumps(value)
                query_parts.append(f"{key}={quote(str(value), safe='')}")
            if query_parts:
                url = f"{url}?{'&'.join(query_parts)}"
        return url
    
    def request(self, method: str, path: str, data: Optional[Any] = None,
                params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None,
                stream: bool = False, ok_statuses=(), timeout=_DEFAULT_TIMEOUT) -> Any:
        """
        Make HTTP request to Docker daemon
        
        Args:
            method: HTTP method (GET, POST, DELETE, etc.)
            path: API path without version prefix
            data: JSON data for request body, or raw bytes
            params: URL query parameters
            headers: HTTP headers
            stream: If True, return a StreamingResponse
            ok_statuses: Error statuses to treat as success (e.g. 409)
            timeout: Socket timeout for this request (None: wait indefinitely)
        
        Returns:
            Parsed JSON response, text, None, or StreamingResponse if stream=True
        """
        return self._send(method, path, data=data, params=params, headers=headers,
                          stream=stream, ok_statuses=ok_statuses, timeout=timeout)
    
    def _send(self, method: str, path: str, data: Optional[Any] = None,
              params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None,
              stream: bool = False, ok_statuses=(), versioned: bool = True,
              timeout=_DEFAULT_TIMEOUT) -> Any:
        url = self.build_url(path, params, versioned=versioned)
        
        # Prepare headers
        req_headers = {'Host': 'docker' if self.endpoint.is_unix else self.endpoint.address}
        if headers:
            req_headers.update(headers)
        
        # Prepare body
        body = None
        if data is not None:
            if isinstance(data, bytes):
                body = data
                req_headers.setdefault('Content-Type', 'application/octet-stream')
            else:
                body = json.dumps(data).encode('utf-8')
                req_headers['Content-Type'] = 'application/json'
            req_headers['Content-Length'] = str(len(body))
        
        logger.debug(f"{method} {url}")
        conn = self._connect(timeout)
        try:
            try:
                conn.request(method, url, body=body, headers=req_headers)
                response = conn.getresponse()
            except (OSError, http.client.HTTPException) as e:
                raise DockerConnectionError(
                    f"Cannot connect to the Docker daemon at {self.base_url}: {e}"
                ) from e
            
            if response.status >= 400 and response.status not in ok_statuses:
                self._raise_for_status(response)
            
            if stream:
                stream_response = StreamingResponse(response, conn)
                conn = None  # owned by the stream now
                return stream_response
            
            try:
                response_data = response.read()
            except (OSError, http.client.HTTPException) as e:
                raise DockerConnectionError(f"Connection to {self.base_url} lost: {e}") from e
            if not response_data:
                return None
            
            content_type = response.headers.get('Content-Type', '') if response.headers else ''
            if 'json' in content_type or not content_type:
                try:
                    return json.loads(response_data.decode('utf-8'))
                except (json.JSONDecodeError, UnicodeDecodeError):
                    pass
            if content_type.startswith('text/') or 'json' in content_type:
                return response_data.decode('utf-8', errors='replace')
            return response_data
        
        finally:
            if conn is not None:
                conn.close()
    
    @staticmethod
    def _raise_for_status(response: http.client.HTTPResponse):
        error_body = response.read().decode('utf-8', errors='replace')
        try:
            explanation = json.loads(error_body).get('message', error_body)
        except (json.JSONDecodeError, AttributeError):
            explanation = error_body.strip()
        
        error_class = NotFound if response.status == 404 else APIError
        raise error_class(
            f"{response.status} {response.reason}: {explanation}",
            response=response,
            status_code=response.status,
            explanation=explanation
        )
    
    def get(self, path: str, **kwargs) -> Any:
        """Make GET request"""
        return self.request('GET', path, **kwargs)
    
    def post(self, path: str, **kwargs) -> Any:
        """Make POST request"""
        return self.request('POST', path, **kwargs)
    
    def delete(self, path: str, **kwargs) -> Any:
        """Make DELETE request"""
        return self.request('DELETE', path, **kwargs)
