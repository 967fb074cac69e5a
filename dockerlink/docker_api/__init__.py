"""
Docker Engine API client - pure Python implementation without external dependencies
Works with the Docker daemon via unix socket, TCP or TLS
"""

from .client import DockerClient
from .endpoint import ClientConfig, Endpoint, resolve_endpoint
from .exceptions import (
    DockerException,
    DockerConfigError,
    DockerConnectionError,
    InvalidArgument,
    APIError,
    NotFound,
    ImageNotFound,
    ContainerNotFound,
    PullError
)
from .host_config import Bind, HostConfig, PortBinding, RestartPolicy
from .images import Image, ImageReference
from .containers import Container, ContainerState
from .streams import (
    CallbackHandler,
    CollectingHandler,
    LogFrame,
    LogTextDecoder,
    PullProgress,
    StreamHandler,
    StreamTask
)

__all__ = [
    'DockerClient',
    'ClientConfig',
    'Endpoint',
    'resolve_endpoint',
    'DockerException',
    'DockerConfigError',
    'DockerConnectionError',
    'InvalidArgument',
    'APIError',
    'NotFound',
    'ImageNotFound',
    'ContainerNotFound',
    'PullError',
    'Bind',
    'HostConfig',
    'PortBinding',
    'RestartPolicy',
    'Image',
    'ImageReference',
    'Container',
    'ContainerState',
    'CallbackHandler',
    'CollectingHandler',
    'LogFrame',
    'LogTextDecoder',
    'PullProgress',
    'StreamHandler',
    'StreamTask'
]
