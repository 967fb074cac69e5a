"""Unit tests for host config value objects."""

import pytest

from dockerlink.docker_api.exceptions import InvalidArgument
from dockerlink.docker_api.host_config import (
    Bind,
    HostConfig,
    PortBinding,
    RestartPolicy,
    parse_bytes,
)


class TestParseBytes:
    """Tests for memory size parsing."""

    @pytest.mark.parametrize('value,expected', [
        (None, None),
        (1024, 1024),
        ('100', 100),
        ('100b', 100),
        ('4k', 4096),
        ('512m', 512 * 1024 ** 2),
        ('2G', 2 * 1024 ** 3),
        ('1gb', 1024 ** 3),
    ])
    def test_valid(self, value, expected):
        assert parse_bytes(value) == expected

    @pytest.mark.parametrize('value', ['lots', '1.5g', '-1', -5, True])
    def test_invalid(self, value):
        with pytest.raises(InvalidArgument):
            parse_bytes(value)


class TestBind:
    """Tests for Bind."""

    def test_parse_default_mode(self):
        bind = Bind.parse('/srv/data:/data')

        assert bind == Bind('/srv/data', '/data', 'rw')
        assert not bind.read_only
        assert str(bind) == '/srv/data:/data:rw'

    def test_parse_read_only(self):
        bind = Bind.parse('/etc/app:/config:ro')

        assert bind.read_only
        assert str(bind) == '/etc/app:/config:ro'

    def test_named_volume_source(self):
        assert Bind.parse('pgdata:/var/lib/postgresql/data').source == 'pgdata'

    def test_mode_options_pass_through(self):
        assert str(Bind('/a', '/b', 'ro,z')) == '/a:/b:ro,z'

    @pytest.mark.parametrize('spec', ['/only', 'a:b:c:d', '/src:relative'])
    def test_invalid(self, spec):
        with pytest.raises(InvalidArgument):
            Bind.parse(spec)

    def test_conflicting_mode(self):
        with pytest.raises(InvalidArgument):
            Bind('/a', '/b', 'ro,rw')


class TestPortBinding:
    """Tests for PortBinding."""

    def test_container_port_only(self):
        binding = PortBinding.parse('80')

        assert binding == PortBinding(80)
        assert binding.host_port is None
        assert binding.port_key == '80/tcp'
        assert binding.to_api() == {'HostPort': ''}

    def test_host_and_container(self):
        binding = PortBinding.parse('8080:80')

        assert binding.host_port == 8080
        assert binding.to_api() == {'HostPort': '8080'}
        assert str(binding) == '8080:80/tcp'

    def test_ip_host_container_protocol(self):
        binding = PortBinding.parse('127.0.0.1:5353:53/udp')

        assert binding == PortBinding(53, 'udp', 5353, '127.0.0.1')
        assert binding.to_api() == {'HostPort': '5353', 'HostIp': '127.0.0.1'}

    def test_ip_with_random_host_port(self):
        binding = PortBinding.parse('127.0.0.1::80')

        assert binding.host_port is None
        assert binding.host_ip == '127.0.0.1'

    def test_ipv6(self):
        binding = PortBinding.parse('[::1]:8080:80')

        assert binding.host_ip == '::1'
        assert binding.host_port == 8080

    def test_protocol_normalized(self):
        assert PortBinding(53, 'UDP').protocol == 'udp'

    @pytest.mark.parametrize('spec', ['0', '70000', '8080:0', 'http', '80/icmp', 'a:b:c:d', 'abc:80',
                                      '127.0.0.1:x:80'])
    def test_invalid(self, spec):
        with pytest.raises(InvalidArgument):
            PortBinding.parse(spec)


class TestRestartPolicy:
    """Tests for RestartPolicy."""

    def test_parse_on_failure(self):
        policy = RestartPolicy.parse('on-failure:5')

        assert policy.to_api() == {'Name': 'on-failure', 'MaximumRetryCount': 5}

    def test_parse_always(self):
        assert RestartPolicy.parse('always') == RestartPolicy('always')

    def test_retry_count_requires_on_failure(self):
        with pytest.raises(InvalidArgument):
            RestartPolicy('always', 3)

    @pytest.mark.parametrize('spec', ['sometimes', 'on-failure:x'])
    def test_invalid(self, spec):
        with pytest.raises(InvalidArgument):
            RestartPolicy.parse(spec)


class TestHostConfig:
    """Tests for HostConfig."""

    def test_empty(self):
        assert HostConfig().to_api() == {}

    def test_limits_and_strings(self):
        config = HostConfig.create(
            memory='256m',
            cpus=1.5,
            binds=['/host:/container:ro'],
            port_bindings=['8080:80', '8443:443'],
            restart_policy='unless-stopped',
            auto_remove=True,
        )

        data = config.to_api()
        assert data['Memory'] == 256 * 1024 ** 2
        assert data['NanoCpus'] == 1_500_000_000
        assert data['Binds'] == ['/host:/container:ro']
        assert data['PortBindings'] == {
            '80/tcp': [{'HostPort': '8080'}],
            '443/tcp': [{'HostPort': '8443'}],
        }
        assert data['RestartPolicy'] == {'Name': 'unless-stopped', 'MaximumRetryCount': 0}
        assert data['AutoRemove'] is True
        assert 'Privileged' not in data

    def test_same_port_bound_twice_is_grouped(self):
        config = HostConfig(port_bindings=[
            PortBinding(80, host_port=8080, host_ip='127.0.0.1'),
            PortBinding(80, host_port=8081),
        ])

        assert config.to_api()['PortBindings'] == {
            '80/tcp': [{'HostPort': '8080', 'HostIp': '127.0.0.1'}, {'HostPort': '8081'}],
        }
        assert config.exposed_ports == {'80/tcp': {}}

    def test_unlimited_swap(self):
        assert HostConfig(memory_swap=-1).to_api() == {'MemorySwap': -1}

    @pytest.mark.parametrize('kwargs', [
        {'cpu_shares': -1},
        {'cpu_quota': 1.5},
        {'memory': 'huge'},
        {'pids_limit': True},
    ])
    def test_invalid_limits(self, kwargs):
        with pytest.raises(InvalidArgument):
            HostConfig(**kwargs)

    def test_negative_cpus(self):
        with pytest.raises(InvalidArgument):
            HostConfig.create(cpus=-1)

    def test_from_api(self):
        config = HostConfig.from_api({
            'Memory': 134217728,
            'NanoCpus': 0,
            'CpuShares': 512,
            'Binds': ['/srv:/srv:ro'],
            'PortBindings': {'80/tcp': [{'HostIp': '', 'HostPort': '8080'}], '53/udp': None},
            'NetworkMode': 'bridge',
            'RestartPolicy': {'Name': 'on-failure', 'MaximumRetryCount': 2},
            'AutoRemove': False,
        })

        assert config.memory == 134217728
        assert config.nano_cpus is None
        assert config.cpu_shares == 512
        assert config.binds == [Bind('/srv', '/srv', 'ro')]
        assert PortBinding(80, 'tcp', 8080) in config.port_bindings
        assert PortBinding(53, 'udp') in config.port_bindings
        assert config.network_mode == 'bridge'
        assert config.restart_policy == RestartPolicy('on-failure', 2)
        assert config.auto_remove is False

    def test_from_api_empty(self):
        assert HostConfig.from_api(None) == HostConfig()
