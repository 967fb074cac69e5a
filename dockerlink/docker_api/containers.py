"""
Docker Containers API
"""

import logging
import shlex
from typing import Any, Dict, List, Optional, Union

from .exceptions import APIError, ContainerNotFound, NotFound
from .host_config import HostConfig
from .streams import CollectingHandler, StreamHandler, StreamTask, iter_log_frames

logger = logging.getLogger(__name__)


class ContainerState:
    """Runtime state reported by container inspect"""
    
    def __init__(self, data: Union[Dict[str, Any], str, None]):
        if not isinstance(data, dict):
            # /containers/json reports State as a bare string
            data = {'Status': data or 'unknown'}
        self.attrs = data
        self.status = data.get('Status', 'unknown')
        self.running = bool(data.get('Running', self.status == 'running'))
        self.paused = bool(data.get('Paused', self.status == 'paused'))
        self.exit_code = data.get('ExitCode')
        self.pid = data.get('Pid')
        self.started_at = data.get('StartedAt')
        self.finished_at = data.get('FinishedAt')
        self.error = data.get('Error') or None
    
    def __repr__(self):
        return f"<ContainerState: {self.status}>"


class Container:
    """Docker Container object"""
    
    def __init__(self, attrs: Dict[str, Any], client):
        self.client = client
        self._load(attrs)
    
    def _load(self, attrs: Dict[str, Any]):
        self.attrs = attrs
        self.id = attrs.get('Id', '')
        self.short_id = self.id[:12] if self.id else ''
        self.name = attrs.get('Name', attrs.get('Names', [''])[0] if attrs.get('Names') else '').lstrip('/')
        
        # Inspect gives a State object, list gives a State string plus Status text
        self.state = ContainerState(attrs.get('State'))
        self.status = self.state.status
        
        config = attrs.get('Config') or {}
        self.image = config.get('Image') or attrs.get('Image', attrs.get('ImageID', ''))
        self.labels = config.get('Labels') or attrs.get('Labels') or {}
        self.ports = attrs.get('Ports') or (attrs.get('NetworkSettings') or {}).get('Ports') or {}
    
    def __repr__(self):
        return f"<Container: {self.name or self.short_id}>"
    
    @property
    def host_config(self) -> HostConfig:
        return HostConfig.from_api(self.attrs.get('HostConfig'))
    
    @property
    def tty(self) -> Optional[bool]:
        config = self.attrs.get('Config')
        if config is None:
            return None
        return bool(config.get('Tty'))
    
    def reload(self) -> 'Container':
        """Reload container data"""
        self._load(self.client.inspect(self.id))
        return self
    
    def start(self):
        """Start this container"""
        return self.client.start(self.id)
    
    def stop(self, timeout: int = 10):
        """Stop this container"""
        return self.client.stop(self.id, timeout=timeout)
    
    def restart(self, timeout: int = 10):
        """Restart this container"""
        return self.client.restart(self.id, timeout=timeout)
    
    def remove(self, force: bool = False, volumes: bool = False):
        """Remove this container"""
        return self.client.remove(self.id, force=force, volumes=volumes)
    
    def kill(self, signal: str = 'SIGKILL'):
        """Kill this container"""
        return self.client.kill(self.id, signal=signal)
    
    def wait(self, condition: str = 'not-running') -> int:
        """Wait for this container to stop"""
        return self.client.wait(self.id, condition=condition)
    
    def logs(self, **kwargs) -> str:
        """Get container logs"""
        kwargs.setdefault('tty', self.tty)
        return self.client.logs(self.id, **kwargs)
    
    def stream_logs(self, handler: Optional[StreamHandler] = None, **kwargs) -> StreamTask:
        """Stream container logs to handler"""
        kwargs.setdefault('tty', self.tty)
        return self.client.stream_logs(self.id, handler=handler, **kwargs)


def _build_command(command: Union[str, List[str], None]) -> Optional[List[str]]:
    if command is None:
        return None
    if isinstance(command, str):
        return shlex.split(command)
    return list(command)


class ContainerCollection:
    """Docker Containers collection"""
    
    def __init__(self, client):
        self.client = client
    
    def list(self, all: bool = False, limit: Optional[int] = None,
             filters: Optional[Dict[str, Any]] = None,
             labels: Optional[Dict[str, str]] = None) -> List[Container]:
        """
        List containers
        
        Args:
            all: Show all containers (including stopped)
            limit: Maximum number of containers to return
            filters: Filters to apply
            labels: Only containers carrying these labels
        
        Returns:
            List of Container objects
        """
        filters = dict(filters or {})
        if labels:
            label_filters = list(filters.get('label', []))
            label_filters.extend(f"{k}={v}" if v is not None else k for k, v in labels.items())
            filters['label'] = label_filters
        
        params: Dict[str, Any] = {'all': all}
        if limit:
            params['limit'] = limit
        if filters:
            params['filters'] = filters
        
        containers_data = self.client.http.get('/containers/json', params=params) or []
        return [Container(c_data, self) for c_data in containers_data]
    
    def inspect(self, container_id: str) -> Dict[str, Any]:
        """
        Inspect container
        
        Raises:
            ContainerNotFound: If container not found
        """
        try:
            return self.client.http.get(f'/containers/{container_id}/json')
        except NotFound as e:
            raise ContainerNotFound(
                f"Container not found: {container_id}", response=e.response,
                status_code=e.status_code, explanation=e.explanation
            ) from e
    
    def get(self, container_id: str) -> Container:
        """
        Get container by ID or name
        
        Raises:
            ContainerNotFound: If container not found
        """
        return Container(self.inspect(container_id), self)
    
    def build_config(self, image: str, command: Union[str, List[str], None] = None,
                     environment: Optional[Dict[str, Any]] = None,
                     labels: Optional[Dict[str, str]] = None,
                     host_config: Optional[HostConfig] = None,
                     entrypoint: Union[str, List[str], None] = None,
                     working_dir: Optional[str] = None, user: Optional[str] = None,
                     hostname: Optional[str] = None, tty: bool = False,
                     stdin_open: bool = False, **extra) -> Dict[str, Any]:
        """
        Build the /containers/create request body
        
        extra holds raw Engine API keys (e.g. StopSignal) merged last.
        """
        config: Dict[str, Any] = {
            'Image': image,
            'Tty': tty,
            'OpenStdin': stdin_open,
            'StdinOnce': False,
            'AttachStdin': stdin_open,
            'AttachStdout': True,
            'AttachStderr': True,
        }
        
        cmd = _build_command(command)
        if cmd is not None:
            config['Cmd'] = cmd
        entry = _build_command(entrypoint)
        if entry is not None:
            config['Entrypoint'] = entry
        
        if environment:
            if isinstance(environment, dict):
                config['Env'] = [f"{k}={v}" for k, v in environment.items()]
            else:
                config['Env'] = list(environment)
        
        if labels:
            config['Labels'] = {str(k): str(v) for k, v in labels.items()}
        if working_dir:
            config['WorkingDir'] = working_dir
        if user:
            config['User'] = user
        if hostname:
            config['Hostname'] = hostname
        
        if host_config is not None:
            config['HostConfig'] = host_config.to_api()
            if host_config.port_bindings:
                config['ExposedPorts'] = host_config.exposed_ports
        
        config.update(extra)
        return config
    
    def create(self, image: str, command: Union[str, List[str], None] = None,
               name: Optional[str] = None, platform: Optional[str] = None,
               **kwargs) -> Container:
        """
        Create container
        
        Args:
            image: Image name or ID
            command: Command to run (string is split shell-style)
            name: Container name
            platform: Platform (e.g., linux/amd64)
            **kwargs: environment, labels, host_config, entrypoint, working_dir,
                user, hostname, tty, stdin_open, or raw Engine API keys
        
        Returns:
            Container object
        """
        config = self.build_config(image, command=command, **kwargs)
        
        params = {}
        if name:
            params['name'] = name
        if platform:
            params['platform'] = platform
        
        result = self.client.http.post('/containers/create', params=params, data=config)
        for warning in result.get('Warnings') or []:
            logger.warning(f"Docker: {warning}")
        
        container_id = result.get('Id')
        logger.info(f"Container {name or container_id[:12]} created")
        return self.get(container_id)
    
    def run(self, image: str, command: Union[str, List[str], None] = None, **kwargs) -> Container:
        """
        Create and start container
        
        Returns:
            Container object (reloaded after start)
        """
        container = self.create(image, command=command, **kwargs)
        container.start()
        return container.reload()
    
    def _grace_timeout(self, grace: int) -> Optional[float]:
        # The daemon replies only after the stop grace period has run out
        timeout = self.client.http.timeout
        if timeout is None:
            return None
        return timeout + grace
    
    def start(self, container_id: str):
        """Start container"""
        self.client.http.post(f'/containers/{container_id}/start')
        logger.info(f"Container {container_id} started")
    
    def stop(self, container_id: str, timeout: int = 10):
        """Stop container"""
        params = {'t': timeout}
        self.client.http.post(f'/containers/{container_id}/stop', params=params,
                              timeout=self._grace_timeout(timeout))
        logger.info(f"Container {container_id} stopped")
    
    def restart(self, container_id: str, timeout: int = 10):
        """Restart container"""
        params = {'t': timeout}
        self.client.http.post(f'/containers/{container_id}/restart', params=params,
                              timeout=self._grace_timeout(timeout))
        logger.info(f"Container {container_id} restarted")
    
    def kill(self, container_id: str, signal: str = 'SIGKILL'):
        """Kill container"""
        params = {'signal': signal}
        self.client.http.post(f'/containers/{container_id}/kill', params=params)
        logger.info(f"Container {container_id} killed ({signal})")
    
    def remove(self, container_id: str, force: bool = False, volumes: bool = False):
        """Remove container"""
        params = {'force': force, 'v': volumes}
        try:
            self.client.http.delete(f'/containers/{container_id}', params=params)
        except NotFound as e:
            raise ContainerNotFound(
                f"Container not found: {container_id}", response=e.response,
                status_code=e.status_code, explanation=e.explanation
            ) from e
        logger.info(f"Container {container_id} removed")
    
    def wait(self, container_id: str, condition: str = 'not-running') -> int:
        """
        Block until container stops
        
        The daemon holds the response until the condition is met, so this
        request runs without a socket timeout.
        
        Args:
            condition: 'not-running', 'next-exit' or 'removed'
        
        Returns:
            Exit code
        
        Raises:
            ContainerNotFound: If container not found
            APIError: If the daemon could not report an exit code
        """
        try:
            result = self.client.http.post(
                f'/containers/{container_id}/wait', params={'condition': condition}, timeout=None
            ) or {}
        except NotFound as e:
            raise ContainerNotFound(
                f"Container not found: {container_id}", response=e.response,
                status_code=e.status_code, explanation=e.explanation
            ) from e
        
        error = result.get('Error') or {}
        if error.get('Message'):
            raise APIError(f"Wait for container {container_id} failed: {error['Message']}",
                           explanation=error['Message'])
        if 'StatusCode' not in result:
            raise APIError(f"Wait for container {container_id} returned no exit code")
        return result['StatusCode']
    
    def logs(self, container_id: str, stdout: bool = True, stderr: bool = True,
             timestamps: bool = False, tail: Union[str, int] = 'all',
             since: Optional[int] = None, tty: Optional[bool] = None) -> str:
        """
        Get container logs as text
        
        Args:
            container_id: Container ID
            stdout: Return stdout stream
            stderr: Return stderr stream
            timestamps: Show timestamps
            tail: Number of lines to show from end ('all' for all)
            since: Show logs since timestamp (Unix epoch)
            tty: Whether the container has a TTY (None: detect)
        
        Returns:
            Log output, stdout and stderr interleaved in arrival order
        """
        collector = CollectingHandler()
        task = self.stream_logs(
            container_id, stdout=stdout, stderr=stderr, timestamps=timestamps,
            tail=tail, since=since, follow=False, tty=tty,
            handler=collector, background=False
        )
        task.run().result()
        return b''.join(frame.data for frame in collector.items).decode('utf-8', errors='replace')
    
    def stream_logs(self, container_id: str, handler: Optional[StreamHandler] = None,
                    follow: bool = True, stdout: bool = True, stderr: bool = True,
                    timestamps: bool = False, tail: Union[str, int] = 'all',
                    since: Optional[int] = None, tty: Optional[bool] = None,
                    background: bool = True) -> StreamTask:
        """
        Stream container logs
        
        Each LogFrame goes to handler.on_item. With follow=True the stream
        stays open until the container stops or the task is closed.
        
        Returns:
            StreamTask (already running unless background=False)
        """
        params = {
            'stdout': stdout,
            'stderr': stderr,
            'timestamps': timestamps,
            'tail': tail,
            'since': since,
            'follow': follow,
        }
        
        def open_stream():
            try:
                response = self.client.http.get(
                    f'/containers/{container_id}/logs', params=params, stream=True
                )
            except NotFound as e:
                raise ContainerNotFound(
                    f"Container not found: {container_id}", response=e.response,
                    status_code=e.status_code, explanation=e.explanation
                ) from e
            if follow:
                response.set_timeout(None)
            return response
        
        task = StreamTask(open_stream, lambda response: iter_log_frames(response, tty=tty),
                          handler=handler, name=f"logs {container_id}")
        return task.start() if background else task

