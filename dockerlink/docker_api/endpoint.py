"""
Endpoint resolution - turns a Docker host URL, API version and TLS settings
into something the HTTP client can connect to.

Nothing here opens a socket: an unreachable daemon is only reported when the
first command is sent.
"""

import os
import platform
import re
import ssl
from typing import Dict, Mapping, NamedTuple, Optional
from urllib.parse import urlsplit

from .exceptions import DockerConfigError

DEFAULT_UNIX_SOCKET = '/var/run/docker.sock'
MACOS_UNIX_SOCKET = '~/.docker/run/docker.sock'
DEFAULT_TCP_PORT = 2375
DEFAULT_TLS_PORT = 2376
DEFAULT_TIMEOUT = 60

AUTO_VERSION = 'auto'
_VERSION_RE = re.compile(r'^\d+\.\d+$')


class Endpoint(NamedTuple):
    """Resolved transport endpoint"""
    scheme: str  # 'unix', 'tcp' or 'tls'
    address: str  # socket path for unix, host for tcp/tls
    port: Optional[int] = None
    
    @property
    def is_unix(self) -> bool:
        return self.scheme == 'unix'
    
    @property
    def is_tls(self) -> bool:
        return self.scheme == 'tls'
    
    def __str__(self):
        if self.is_unix:
            return f"unix://{self.address}"
        prefix = 'https' if self.is_tls else 'tcp'
        return f"{prefix}://{self.address}:{self.port}"


class ClientConfig:
    """
    Connection settings for a Docker daemon
    
    Args:
        docker_host: Host URL (unix://, tcp://, http://, https:// or a socket path).
            None selects the platform's default socket.
        api_version: 'MAJOR.MINOR', 'auto' to ask the daemon, or None for the
            daemon's default (unversioned paths)
        tls: Use TLS for TCP hosts
        tls_verify: Verify the daemon certificate against ca.pem (implies tls)
        cert_path: Directory holding ca.pem, cert.pem and key.pem
        timeout: Socket timeout in seconds
    """
    
    def __init__(self, docker_host: Optional[str] = None, api_version: Optional[str] = None,
                 tls: bool = False, tls_verify: bool = False,
                 cert_path: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT):
        self.docker_host = docker_host or None
        self.api_version = normalize_api_version(api_version)
        self.tls_verify = bool(tls_verify)
        self.tls = bool(tls) or self.tls_verify
        self.cert_path = os.path.expanduser(cert_path) if cert_path else None
        self.timeout = timeout
    
    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'ClientConfig':
        """
        Build config from the standard DOCKER_* environment variables
        
        Recognized: DOCKER_HOST, DOCKER_API_VERSION, DOCKER_TLS_VERIFY,
        DOCKER_CERT_PATH, DOCKER_CLIENT_TIMEOUT. Keyword overrides that are
        not None win over the environment.
        """
        env = os.environ if environ is None else environ
        values = {
            'docker_host': env.get('DOCKER_HOST') or None,
            'api_version': env.get('DOCKER_API_VERSION') or None,
            'tls_verify': _env_flag(env.get('DOCKER_TLS_VERIFY')),
            'cert_path': env.get('DOCKER_CERT_PATH') or None,
        }
        timeout = env.get('DOCKER_CLIENT_TIMEOUT')
        if timeout:
            try:
                values['timeout'] = float(timeout)
            except ValueError as e:
                raise DockerConfigError(f"Invalid DOCKER_CLIENT_TIMEOUT: {timeout}") from e
        
        # Like the docker CLI, a cert path alone turns TLS on
        if values['cert_path'] and not values['tls_verify']:
            values['tls'] = True
        
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
    
    @property
    def endpoint(self) -> Endpoint:
        return resolve_endpoint(self.docker_host, tls=self.tls)
    
    def ssl_context(self) -> Optional[ssl.SSLContext]:
        """Build the SSL context for TLS endpoints (None for plain transports)"""
        if not self.tls:
            return None
        return build_ssl_context(self.cert_path, verify=self.tls_verify)
    
    def as_dict(self) -> Dict[str, object]:
        return {
            'docker_host': self.docker_host,
            'api_version': self.api_version,
            'tls': self.tls,
            'tls_verify': self.tls_verify,
            'cert_path': self.cert_path,
            'timeout': self.timeout,
        }
    
    def __repr__(self):
        return f"<ClientConfig: {self.endpoint} api={self.api_version or 'default'}>"


def _env_flag(value: Optional[str]) -> bool:
    # docker treats any non-empty value as "on", except explicit falsy words
    if not value:
        return False
    return value.strip().lower() not in ('0', 'false', 'no', 'off')


def normalize_api_version(version: Optional[str]) -> Optional[str]:
    """Validate an API version string, stripping a leading 'v'"""
    if version is None:
        return None
    version = str(version).strip()
    if not version:
        return None
    if version.lower() == AUTO_VERSION:
        return AUTO_VERSION
    if version[:1] in ('v', 'V'):
        version = version[1:]
    if not _VERSION_RE.match(version):
        raise DockerConfigError(f"Invalid API version: {version!r} (expected MAJOR.MINOR)")
    return version


def default_socket_path() -> str:
    """Default Docker socket path for this platform"""
    if platform.system() == "Darwin":
        socket_path = os.path.expanduser(MACOS_UNIX_SOCKET)
        # Docker Desktop keeps a per-user socket, older installs use the system one
        if os.path.exists(socket_path):
            return socket_path
    return DEFAULT_UNIX_SOCKET


def resolve_endpoint(docker_host: Optional[str] = None, tls: bool = False) -> Endpoint:
    """
    Resolve a Docker host URL into an Endpoint
    
    Args:
        docker_host: unix:///path, /path, tcp://host[:port], http://host[:port],
            https://host[:port] or None for the default socket
        tls: Use TLS for tcp:// and http:// hosts
    
    Returns:
        Endpoint
    
    Raises:
        DockerConfigError: Unsupported scheme or malformed URL
    """
    if not docker_host:
        return Endpoint('unix', default_socket_path())
    
    docker_host = docker_host.strip()
    if docker_host.startswith('/'):
        return Endpoint('unix', docker_host)
    
    if '://' not in docker_host:
        # "host:port" shorthand, as accepted by the docker CLI
        docker_host = f"tcp://{docker_host}"
    
    scheme, _, rest = docker_host.partition('://')
    scheme = scheme.lower()
    
    if scheme == 'unix':
        path = '/' + rest.lstrip('/')
        if path == '/':
            raise DockerConfigError(f"Missing socket path in {docker_host!r}")
        return Endpoint('unix', path)
    
    if scheme == 'npipe':
        raise DockerConfigError("Windows named pipes are not supported")
    
    if scheme not in ('tcp', 'http', 'https'):
        raise DockerConfigError(f"Unsupported Docker host scheme: {scheme!r}")
    
    use_tls = tls or scheme == 'https'
    try:
        parts = urlsplit(f"//{rest}")
        host = parts.hostname
        port = parts.port
    except ValueError as e:
        raise DockerConfigError(f"Invalid Docker host: {docker_host!r}") from e
    
    if not host:
        raise DockerConfigError(f"Missing host in {docker_host!r}")
    if parts.path not in ('', '/'):
        raise DockerConfigError(f"Docker host must not contain a path: {docker_host!r}")
    
    if port is None:
        port = DEFAULT_TLS_PORT if use_tls else DEFAULT_TCP_PORT
    
    return Endpoint('tls' if use_tls else 'tcp', host, port)


def build_ssl_context(cert_path: Optional[str], verify: bool = True) -> ssl.SSLContext:
    """
    Build an SSL context from a docker cert directory
    
    Args:
        cert_path: Directory with ca.pem, cert.pem, key.pem
        verify: Check the daemon certificate against ca.pem
    
    Raises:
        DockerConfigError: Verification requested without a CA, or unreadable files
    """
    ca_file = cert_file = key_file = None
    if cert_path:
        if not os.path.isdir(cert_path):
            raise DockerConfigError(f"Certificate directory not found: {cert_path}")
        ca_file = os.path.join(cert_path, 'ca.pem')
        cert_file = os.path.join(cert_path, 'cert.pem')
        key_file = os.path.join(cert_path, 'key.pem')
    
    try:
        if verify:
            if not ca_file or not os.path.exists(ca_file):
                raise DockerConfigError("TLS verification requires ca.pem in the cert path")
            context = ssl.create_default_context(cafile=ca_file)
        else:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        
        if cert_file and key_file and os.path.exists(cert_file) and os.path.exists(key_file):
            context.load_cert_chain(cert_file, key_file)
    except (ssl.SSLError, OSError) as e:
        raise DockerConfigError(f"Could not load TLS files from {cert_path}: {e}") from e
    
    return context
