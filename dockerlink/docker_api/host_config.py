"""
Host config value objects - resource limits, bind mounts, port bindings
and restart policy, in the shape the Engine API expects under HostConfig.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .exceptions import InvalidArgument

PROTOCOLS = ('tcp', 'udp', 'sctp')
RESTART_POLICIES = ('no', 'always', 'unless-stopped', 'on-failure')

_MEMORY_RE = re.compile(r'^\s*(\d+)\s*([bkmg]?)b?\s*$', re.IGNORECASE)
_MEMORY_UNITS = {'': 1, 'b': 1, 'k': 1024, 'm': 1024 ** 2, 'g': 1024 ** 3}


def parse_bytes(value: Union[int, str, None]) -> Optional[int]:
    """
    Convert a memory size to bytes
    
    Accepts ints or strings like '512m', '2g', '1024k', '100b'.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidArgument(f"Invalid memory size: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise InvalidArgument(f"Memory size must not be negative: {value}")
        return value
    
    match = _MEMORY_RE.match(str(value))
    if not match:
        raise InvalidArgument(f"Invalid memory size: {value!r}")
    number, unit = match.groups()
    return int(number) * _MEMORY_UNITS[unit.lower()]


def _check_port(port: Any, what: str) -> int:
    try:
        port = int(port)
    except (TypeError, ValueError) as e:
        raise InvalidArgument(f"Invalid {what}: {port!r}") from e
    if not 1 <= port <= 65535:
        raise InvalidArgument(f"{what.capitalize()} out of range: {port}")
    return port


@dataclass(frozen=True)
class Bind:
    """Host path (or named volume) mounted into a container"""
    source: str
    target: str
    mode: str = 'rw'
    
    def __post_init__(self):
        if not self.source:
            raise InvalidArgument("Bind source must not be empty")
        if not self.target.startswith('/'):
            raise InvalidArgument(f"Bind target must be an absolute path: {self.target!r}")
        options = self.mode.split(',') if self.mode else []
        if 'ro' in options and 'rw' in options:
            raise InvalidArgument(f"Bind mode cannot be both ro and rw: {self.mode!r}")
    
    @property
    def read_only(self) -> bool:
        return 'ro' in self.mode.split(',')
    
    @classmethod
    def parse(cls, spec: str) -> 'Bind':
        """Parse 'source:target[:mode]'"""
        parts = spec.split(':')
        if len(parts) == 2:
            return cls(parts[0], parts[1])
        if len(parts) == 3:
            return cls(parts[0], parts[1], parts[2] or 'rw')
        raise InvalidArgument(f"Invalid bind spec: {spec!r} (expected source:target[:mode])")
    
    def __str__(self):
        return f"{self.source}:{self.target}:{self.mode}" if self.mode else f"{self.source}:{self.target}"


@dataclass(frozen=True)
class PortBinding:
    """Container port published on the host"""
    container_port: int
    protocol: str = 'tcp'
    host_port: Optional[int] = None
    host_ip: Optional[str] = None
    
    def __post_init__(self):
        object.__setattr__(self, 'container_port', _check_port(self.container_port, 'container port'))
        if self.host_port is not None:
            object.__setattr__(self, 'host_port', _check_port(self.host_port, 'host port'))
        protocol = (self.protocol or 'tcp').lower()
        if protocol not in PROTOCOLS:
            raise InvalidArgument(f"Unsupported protocol: {self.protocol!r}")
        object.__setattr__(self, 'protocol', protocol)
    
    @property
    def port_key(self) -> str:
        """Key used in ExposedPorts / PortBindings, e.g. '80/tcp'"""
        return f"{self.container_port}/{self.protocol}"
    
    @classmethod
    def parse(cls, spec: str) -> 'PortBinding':
        """
        Parse '[host_ip:][host_port:]container_port[/protocol]'
        
        Examples: '80', '8080:80', '127.0.0.1:8080:80/udp', '127.0.0.1::80'
        """
        spec = spec.strip()
        port_part, _, protocol = spec.partition('/')
        protocol = protocol or 'tcp'
        
        if port_part.count(':') > 2 or port_part.startswith('['):
            # IPv6 host address: [::1]:8080:80
            match = re.match(r'^\[([^\]]+)\]:(\d*):(\d+)$', port_part)
            if not match:
                raise InvalidArgument(f"Invalid port binding: {spec!r}")
            host_ip, host_port, container_port = match.groups()
        else:
            parts = port_part.split(':')
            host_ip = host_port = None
            if len(parts) == 1:
                container_port = parts[0]
            elif len(parts) == 2:
                host_port, container_port = parts
            else:
                host_ip, host_port, container_port = parts
        
        return cls(
            container_port=container_port,
            protocol=protocol,
            host_port=host_port or None,
            host_ip=host_ip or None,
        )
    
    def to_api(self) -> Dict[str, str]:
        binding = {'HostPort': str(self.host_port) if self.host_port else ''}
        if self.host_ip:
            binding['HostIp'] = self.host_ip
        return binding
    
    def __str__(self):
        prefix = ''
        if self.host_ip:
            prefix = f"{self.host_ip}:{self.host_port or ''}:"
        elif self.host_port:
            prefix = f"{self.host_port}:"
        return f"{prefix}{self.port_key}"


@dataclass(frozen=True)
class RestartPolicy:
    name: str = 'no'
    maximum_retry_count: int = 0
    
    def __post_init__(self):
        if self.name not in RESTART_POLICIES:
            raise InvalidArgument(f"Unknown restart policy: {self.name!r}")
        if self.maximum_retry_count < 0:
            raise InvalidArgument("Restart retry count must not be negative")
        if self.maximum_retry_count and self.name != 'on-failure':
            raise InvalidArgument("Retry count is only valid with the on-failure policy")
    
    @classmethod
    def parse(cls, spec: str) -> 'RestartPolicy':
        """Parse 'always', 'on-failure:5' etc."""
        name, _, count = spec.partition(':')
        try:
            return cls(name, int(count) if count else 0)
        except ValueError as e:
            raise InvalidArgument(f"Invalid restart policy: {spec!r}") from e
    
    def to_api(self) -> Dict[str, Any]:
        return {'Name': self.name, 'MaximumRetryCount': self.maximum_retry_count}


# HostConfig attribute -> Engine API key, for the plain numeric limits
_LIMIT_KEYS = {
    'memory': 'Memory',
    'memory_swap': 'MemorySwap',
    'memory_reservation': 'MemoryReservation',
    'nano_cpus': 'NanoCpus',
    'cpu_shares': 'CpuShares',
    'cpu_period': 'CpuPeriod',
    'cpu_quota': 'CpuQuota',
    'pids_limit': 'PidsLimit',
}


@dataclass
class HostConfig:
    """
    Per-container runtime configuration
    
    Only fields that were set are sent to the daemon, so engine defaults
    apply to everything else.
    """
    memory: Optional[int] = None
    memory_swap: Optional[int] = None
    memory_reservation: Optional[int] = None
    nano_cpus: Optional[int] = None
    cpu_shares: Optional[int] = None
    cpu_period: Optional[int] = None
    cpu_quota: Optional[int] = None
    cpuset_cpus: Optional[str] = None
    pids_limit: Optional[int] = None
    binds: List[Bind] = field(default_factory=list)
    port_bindings: List[PortBinding] = field(default_factory=list)
    network_mode: Optional[str] = None
    auto_remove: bool = False
    privileged: bool = False
    publish_all_ports: bool = False
    restart_policy: Optional[RestartPolicy] = None
    
    def __post_init__(self):
        for attr in ('memory', 'memory_swap', 'memory_reservation'):
            value = getattr(self, attr)
            if attr == 'memory_swap' and value == -1:
                continue
            setattr(self, attr, parse_bytes(value))
        
        for attr in _LIMIT_KEYS:
            value = getattr(self, attr)
            if value is None:
                continue
            # memory_swap=-1 means unlimited swap
            if attr == 'memory_swap' and value == -1:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidArgument(f"{attr} must be a non-negative integer, got {value!r}")
        
        self.binds = [b if isinstance(b, Bind) else Bind.parse(b) for b in self.binds]
        self.port_bindings = [
            p if isinstance(p, PortBinding) else PortBinding.parse(str(p)) for p in self.port_bindings
        ]
        if isinstance(self.restart_policy, str):
            self.restart_policy = RestartPolicy.parse(self.restart_policy)
    
    @classmethod
    def create(cls, cpus: Optional[float] = None, **kwargs) -> 'HostConfig':
        """Build a HostConfig, accepting a fractional CPU count like the docker CLI's --cpus"""
        if cpus is not None:
            if cpus < 0:
                raise InvalidArgument(f"cpus must not be negative: {cpus}")
            kwargs['nano_cpus'] = int(cpus * 1e9)
        return cls(**kwargs)
    
    @property
    def exposed_ports(self) -> Dict[str, dict]:
        return {binding.port_key: {} for binding in self.port_bindings}
    
    def to_api(self) -> Dict[str, Any]:
        """Serialize to the Engine API HostConfig object"""
        data: Dict[str, Any] = {}
        for attr, key in _LIMIT_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        
        if self.cpuset_cpus:
            data['CpusetCpus'] = self.cpuset_cpus
        if self.binds:
            data['Binds'] = [str(b) for b in self.binds]
        if self.port_bindings:
            grouped: Dict[str, List[Dict[str, str]]] = {}
            for binding in self.port_bindings:
                grouped.setdefault(binding.port_key, []).append(binding.to_api())
            data['PortBindings'] = grouped
        if self.network_mode:
            data['NetworkMode'] = self.network_mode
        if self.auto_remove:
            data['AutoRemove'] = True
        if self.privileged:
            data['Privileged'] = True
        if self.publish_all_ports:
            data['PublishAllPorts'] = True
        if self.restart_policy:
            data['RestartPolicy'] = self.restart_policy.to_api()
        return data
    
    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> 'HostConfig':
        """Decode the HostConfig section of a container inspect payload"""
        data = data or {}
        kwargs: Dict[str, Any] = {}
        for attr, key in _LIMIT_KEYS.items():
            value = data.get(key)
            # The engine reports unset limits as 0 (or null)
            if value:
                kwargs[attr] = value
        
        binds = []
        for spec in data.get('Binds') or []:
            try:
                binds.append(Bind.parse(spec))
            except InvalidArgument:
                continue
        
        port_bindings = []
        for port_key, bindings in (data.get('PortBindings') or {}).items():
            port, _, protocol = port_key.partition('/')
            for binding in bindings or [{}]:
                host_port = (binding or {}).get('HostPort')
                port_bindings.append(PortBinding(
                    container_port=int(port),
                    protocol=protocol or 'tcp',
                    host_port=host_port or None,
                    host_ip=(binding or {}).get('HostIp') or None,
                ))
        
        restart = data.get('RestartPolicy') or {}
        restart_policy = None
        if restart.get('Name'):
            restart_policy = RestartPolicy(restart['Name'], restart.get('MaximumRetryCount') or 0)
        
        return cls(
            cpuset_cpus=data.get('CpusetCpus') or None,
            binds=binds,
            port_bindings=port_bindings,
            network_mode=data.get('NetworkMode') or None,
            auto_remove=bool(data.get('AutoRemove')),
            privileged=bool(data.get('Privileged')),
            publish_all_ports=bool(data.get('PublishAllPorts')),
            restart_policy=restart_policy,
            **kwargs
        )
