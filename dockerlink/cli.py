"""
CLI - command line interface
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .docker_api import DockerClient
from .docker_api.exceptions import DockerException
from .docker_api.host_config import HostConfig
from .docker_api.streams import CallbackHandler, LogTextDecoder
from .settings_manager import SettingsManager

logger = logging.getLogger(__name__)


def _parse_pairs(items: Optional[List[str]], what: str) -> dict:
    """Turn ['KEY=value', ...] into a dict"""
    result = {}
    for item in items or []:
        key, sep, value = item.partition('=')
        if not key or not sep:
            raise DockerException(f"Invalid {what} {item!r}, expected KEY=VALUE")
        result[key] = value
    return result


class DockerCLI:
    """Docker client CLI interface"""
    
    def __init__(self, client: DockerClient, out=None):
        """
        Initialize CLI
        
        Args:
            client: Docker client (not contacted until the first command)
            out: Output stream for tables (default: stdout)
        """
        self.client = client
        self.out = out or sys.stdout
    
    def _print(self, text: str = ''):
        print(text, file=self.out)
    
    def info(self):
        """Show engine information"""
        info = self.client.info()
        self._print("Docker information:")
        self._print(f"  Server Version: {info.get('ServerVersion', 'Unknown')}")
        self._print(f"  OS: {info.get('OperatingSystem', 'Unknown')} ({info.get('Architecture', '?')})")
        self._print(f"  Kernel: {info.get('KernelVersion', 'Unknown')}")
        self._print(f"  CPUs: {info.get('NCPU', '?')}  Memory: {info.get('MemTotal', 0) // (1024 ** 2)} MiB")
        self._print(f"  Containers: {info.get('Containers', 0)} "
                    f"(running: {info.get('ContainersRunning', 0)}, "
                    f"stopped: {info.get('ContainersStopped', 0)})")
        self._print(f"  Images: {info.get('Images', 0)}")
        return True
    
    def version(self):
        """Show client and server API versions"""
        version = self.client.version()
        self._print(f"Endpoint: {self.client.http.base_url}")
        self._print(f"Server: {version.get('Version', 'Unknown')}")
        self._print(f"API: {version.get('ApiVersion', 'Unknown')} (min {version.get('MinAPIVersion', '?')})")
        self._print(f"Client API: {self.client.api_version or 'daemon default'}")
        return True
    
    def ping(self):
        """Check the daemon answers"""
        if self.client.ping():
            self._print("OK")
            return True
        logger.error("Docker daemon did not answer ping")
        return False
    
    def list_images(self, all_images: bool = False):
        """List images"""
        images = self.client.images.list(all=all_images)
        
        if not images:
            logger.info("No images found")
            return True
        
        self._print(f"{'REPOSITORY:TAG':<50} {'ID':<15} {'SIZE':>10}")
        self._print("-" * 77)
        for image in images:
            size_mb = f"{image.size / (1024 ** 2):.1f}MB"
            for tag in image.tags or ['<none>:<none>']:
                self._print(f"{tag:<50} {image.short_id:<15} {size_mb:>10}")
        
        self._print(f"\nTotal: {len(images)}")
        return True
    
    def pull(self, reference: str, platform: Optional[str] = None, quiet: bool = False):
        """Pull image, printing progress"""
        def show(progress):
            if not quiet:
                self._print(str(progress))
        
        task = self.client.images.pull(
            reference, platform=platform, handler=CallbackHandler(on_item=show)
        )
        try:
            image = task.result()
        except KeyboardInterrupt:
            task.close()
            raise
        self._print(f"Pulled {reference} ({image.short_id})")
        return True
    
    def list_containers(self, all_containers: bool = False):
        """List containers"""
        containers = self.client.containers.list(all=all_containers)
        
        if not containers:
            logger.info("No containers found")
            return True
        
        # Header
        self._print(f"{'NAME':<30} {'STATUS':<15} {'IMAGE':<40} {'ID':<15}")
        self._print("-" * 100)
        
        for c in containers:
            self._print(f"{c.name:<30} {c.status:<15} {c.image:<40} {c.short_id:<15}")
        
        self._print(f"\nTotal: {len(containers)}")
        return True
    
    def create(self, image: str, name: Optional[str] = None, command: Optional[str] = None,
               env: Optional[List[str]] = None, labels: Optional[List[str]] = None,
               volumes: Optional[List[str]] = None, ports: Optional[List[str]] = None,
               memory: Optional[str] = None, cpus: Optional[float] = None,
               restart: Optional[str] = None, auto_remove: bool = False,
               network: Optional[str] = None, tty: bool = False, start: bool = False):
        """Create (and optionally start) a container"""
        host_config = HostConfig.create(
            cpus=cpus,
            memory=memory,
            binds=volumes or [],
            port_bindings=ports or [],
            restart_policy=restart,
            auto_remove=auto_remove,
            network_mode=network,
        )
        
        create = self.client.containers.run if start else self.client.containers.create
        container = create(
            image,
            command=command,
            name=name,
            environment=_parse_pairs(env, 'environment variable'),
            labels=_parse_pairs(labels, 'label'),
            host_config=host_config,
            tty=tty,
        )
        self._print(container.id)
        return True
    
    def start(self, name: str):
        """Start container"""
        self.client.containers.start(name)
        self._print(name)
        return True
    
    def stop(self, name: str, timeout: int = 10):
        """Stop container"""
        self.client.containers.stop(name, timeout=timeout)
        self._print(name)
        return True
    
    def restart(self, name: str, timeout: int = 10):
        """Restart container"""
        self.client.containers.restart(name, timeout=timeout)
        self._print(name)
        return True
    
    def kill(self, name: str, signal: str = 'SIGKILL'):
        """Send a signal to a container"""
        self.client.containers.kill(name, signal=signal)
        self._print(name)
        return True
    
    def remove(self, name: str, force: bool = False):
        """Remove container"""
        self.client.containers.remove(name, force=force)
        self._print(name)
        return True
    
    def inspect(self, name: str):
        """Print container inspect JSON"""
        self._print(json.dumps(self.client.containers.inspect(name), indent=2))
        return True
    
    def wait(self, name: str):
        """Wait for container to stop and print its exit code"""
        exit_code = self.client.containers.wait(name)
        self._print(str(exit_code))
        return exit_code == 0
    
    def logs(self, name: str, tail: str = 'all', follow: bool = False, timestamps: bool = False):
        """Show container logs"""
        if not follow:
            self.out.write(self.client.containers.logs(name, tail=tail, timestamps=timestamps))
            return True
        
        decoder = LogTextDecoder()
        
        def write(frame):
            self.out.write(decoder.decode(frame))
            self.out.flush()
        
        task = self.client.containers.stream_logs(
            name, tail=tail, timestamps=timestamps, follow=True,
            handler=CallbackHandler(on_item=write)
        )
        try:
            task.result()
        except KeyboardInterrupt:
            task.close()
            task.wait()
        self.out.write(decoder.flush())
        return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dockerlink',
        description='dockerlink - Docker Engine API client',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Usage examples:
  %(prog)s info                                    # Engine information
  %(prog)s pull --image nginx:alpine
  %(prog)s create --image nginx:alpine --name web -p 8080:80 --memory 256m
  %(prog)s start --name web
  %(prog)s logs --name web --follow
  %(prog)s stop --name web
  %(prog)s rm --name web
  %(prog)s --host tcp://10.0.0.5:2376 --tlsverify --cert-path ~/.docker ps
"""
    )
    
    parser.add_argument(
        'action',
        choices=[
            'info', 'version', 'ping', 'images', 'pull', 'ps',
            'create', 'run', 'start', 'stop', 'restart', 'kill', 'rm',
            'inspect', 'logs', 'wait'
        ],
        help='Action'
    )
    
    # Connection parameters
    parser.add_argument('-H', '--host', help='Docker host (unix:///path, tcp://host:port)')
    parser.add_argument('--api-version', help="API version, e.g. 1.43 or 'auto'")
    parser.add_argument('--tls', action='store_true', default=None, help='Use TLS')
    parser.add_argument('--tlsverify', action='store_true', default=None,
                        help='Use TLS and verify the daemon certificate')
    parser.add_argument('--cert-path', help='Directory with ca.pem, cert.pem, key.pem')
    parser.add_argument('--timeout', type=float, help='Request timeout in seconds')
    parser.add_argument('--settings', help='Settings file (JSON)')
    parser.add_argument('--log-level', help='Log level (DEBUG, INFO, WARNING, ERROR)')
    
    # Container / image parameters
    parser.add_argument('--name', help='Container name or ID')
    parser.add_argument('--image', help='Image reference')
    parser.add_argument('--command', help='Command to run in the container')
    parser.add_argument('-e', '--env', action='append', help='Environment variable KEY=VALUE')
    parser.add_argument('-l', '--label', action='append', help='Label KEY=VALUE')
    parser.add_argument('-v', '--volume', action='append', help='Bind mount source:target[:mode]')
    parser.add_argument('-p', '--publish', action='append', help='Port [ip:][host:]container[/proto]')
    parser.add_argument('--memory', help='Memory limit, e.g. 512m')
    parser.add_argument('--cpus', type=float, help='Number of CPUs')
    parser.add_argument('--restart', help='Restart policy, e.g. on-failure:3')
    parser.add_argument('--network', help='Network mode')
    parser.add_argument('--rm', action='store_true', help='Remove container when it exits')
    parser.add_argument('-t', '--tty', action='store_true', help='Allocate a TTY')
    parser.add_argument('--platform', help='Platform, e.g. linux/amd64')
    
    # Operation parameters
    parser.add_argument('--force', action='store_true', help='Force action')
    parser.add_argument('--signal', default='SIGKILL', help='Signal for kill')
    parser.add_argument('--stop-timeout', type=int, default=10, help='Seconds to wait before killing')
    parser.add_argument('--tail', default='all', help='Number of log lines')
    parser.add_argument('-f', '--follow', action='store_true', help='Follow log output')
    parser.add_argument('--timestamps', action='store_true', help='Show log timestamps')
    parser.add_argument('-q', '--quiet', action='store_true', help='Less output')
    parser.add_argument('--all', action='store_true', help='Show all containers/images')
    
    return parser


def dispatch(cli: DockerCLI, args, parser: argparse.ArgumentParser) -> bool:
    """Run the selected action"""
    action = args.action
    
    if action == 'info':
        return cli.info()
    if action == 'version':
        return cli.version()
    if action == 'ping':
        return cli.ping()
    if action == 'images':
        return cli.list_images(all_images=args.all)
    if action == 'ps':
        return cli.list_containers(all_containers=args.all)
    
    if action == 'pull':
        if not args.image:
            parser.error("pull requires --image")
        return cli.pull(args.image, platform=args.platform, quiet=args.quiet)
    
    if action in ('create', 'run'):
        if not args.image:
            parser.error(f"{action} requires --image")
        return cli.create(
            args.image,
            name=args.name,
            command=args.command,
            env=args.env,
            labels=args.label,
            volumes=args.volume,
            ports=args.publish,
            memory=args.memory,
            cpus=args.cpus,
            restart=args.restart,
            auto_remove=args.rm,
            network=args.network,
            tty=args.tty,
            start=action == 'run',
        )
    
    if not args.name:
        parser.error(f"{action} requires --name")
    
    if action == 'start':
        return cli.start(args.name)
    if action == 'stop':
        return cli.stop(args.name, timeout=args.stop_timeout)
    if action == 'restart':
        return cli.restart(args.name, timeout=args.stop_timeout)
    if action == 'kill':
        return cli.kill(args.name, signal=args.signal)
    if action == 'rm':
        return cli.remove(args.name, force=args.force)
    if action == 'inspect':
        return cli.inspect(args.name)
    if action == 'wait':
        return cli.wait(args.name)
    if action == 'logs':
        return cli.logs(args.name, tail=args.tail, follow=args.follow, timestamps=args.timestamps)
    
    parser.error(f"Unknown action {action}")
    return False


def setup_logging(level: str = 'INFO'):
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO), format='%(message)s')


def run_cli(argv: Optional[List[str]] = None) -> int:
    """Start CLI application"""
    parser = build_parser()
    args = parser.parse_args(argv)
    
    settings = SettingsManager(settings_file=args.settings)
    setup_logging(args.log_level or settings.get('log_level', 'INFO'))
    
    try:
        config = settings.client_config(
            docker_host=args.host,
            api_version=args.api_version,
            tls=args.tls,
            tls_verify=args.tlsverify,
            cert_path=args.cert_path,
            timeout=args.timeout,
        )
        cli = DockerCLI(DockerClient(config=config))
        ok = dispatch(cli, args, parser)
    except KeyboardInterrupt:
        logger.info("\n\nInterrupted by user")
        return 130
    except DockerException as e:
        logger.error(f"Error: {e}")
        return 1
    
    return 0 if ok else 1


def main():
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
