"""
Docker Client - Main API entry point
"""

import logging
from typing import Any, Dict, Optional

from .endpoint import ClientConfig
from .exceptions import APIError
from .http_client import DockerHTTPClient
from .images import ImageCollection
from .containers import ContainerCollection

logger = logging.getLogger(__name__)


class DockerClient:
    """
    Docker API Client
    
    Creating a client never contacts the daemon; connection problems show up
    as DockerConnectionError on the first command.
    """
    
    def __init__(self, base_url: Optional[str] = None, version: Optional[str] = None,
                 timeout: float = 60, tls: bool = False, tls_verify: bool = False,
                 cert_path: Optional[str] = None, config: Optional[ClientConfig] = None):
        """
        Initialize Docker client
        
        Args:
            base_url: Docker host URL or socket path (default: platform socket)
            version: API version ('1.43', 'auto' or None for daemon default)
            timeout: Request timeout in seconds
            tls: Use TLS for TCP hosts
            tls_verify: Verify the daemon certificate
            cert_path: Directory with ca.pem, cert.pem, key.pem
            config: Prebuilt ClientConfig (other arguments are ignored)
        """
        self.config = config or ClientConfig(
            docker_host=base_url, api_version=version, tls=tls,
            tls_verify=tls_verify, cert_path=cert_path, timeout=timeout
        )
        self.http = DockerHTTPClient(self.config)
        self.images = ImageCollection(self)
        self.containers = ContainerCollection(self)
    
    @classmethod
    def from_env(cls, environ=None, **overrides) -> 'DockerClient':
        """Create a client from DOCKER_HOST, DOCKER_API_VERSION, DOCKER_TLS_VERIFY, DOCKER_CERT_PATH"""
        return cls(config=ClientConfig.from_env(environ, **overrides))
    
    def __repr__(self):
        return f"<DockerClient: {self.http.base_url}>"
    
    @property
    def api_version(self) -> Optional[str]:
        return self.http.api_version
    
    def version(self) -> Dict[str, Any]:
        """Get Docker version info"""
        return self.http.get('/version')
    
    def info(self) -> Dict[str, Any]:
        """Get Docker system info"""
        return self.http.get('/info')
    
    def ping(self) -> bool:
        """Ping Docker daemon"""
        try:
            return self.http.get('/_ping') == 'OK'
        except APIError as e:
            logger.warning(f"Ping failed: {e}")
            return False
    
    def close(self):
        """Close client (connections are per request, nothing to release)"""
        pass
    
    def __enter__(self):
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
