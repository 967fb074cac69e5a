#!/usr/bin/env python3
"""
Connecting to a Docker daemon

This example shows the ways a client can be pointed at a daemon:
1. The platform default unix socket
2. The DOCKER_* environment variables
3. An explicit TCP host with TLS verification
4. A pinned or negotiated API version

Creating a client does not touch the network; the first command does.

Run with: python3 connect.py [docker-host]
"""

import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dockerlink import ClientConfig, DockerClient, DockerConnectionError


def print_header(text: str) -> None:
    """Print a formatted header."""
    print(f"\n{'='*60}")
    print(f"  {text}")
    print(f"{'='*60}\n")


def main() -> int:
    print_header("Resolving endpoints")

    default = DockerClient()
    print(f"Default socket:     {default.http.base_url}")

    from_env = DockerClient.from_env()
    print(f"From environment:   {from_env.http.base_url}")

    tcp = DockerClient(base_url="tcp://127.0.0.1:2375", version="1.43")
    print(f"Plain TCP, pinned:  {tcp.http.base_url} (API {tcp.config.api_version})")

    # TLS needs a cert directory with ca.pem, cert.pem and key.pem
    cert_path = os.path.expanduser("~/.docker")
    if os.path.exists(os.path.join(cert_path, "ca.pem")):
        tls_config = ClientConfig(docker_host="tcp://127.0.0.1", tls_verify=True, cert_path=cert_path)
        print(f"TLS endpoint:       {tls_config.endpoint}")

    print_header("First command")

    host = sys.argv[1] if len(sys.argv) > 1 else None
    client = DockerClient(base_url=host, version="auto")
    try:
        print(f"Ping: {'OK' if client.ping() else 'no answer'}")
        print(f"Negotiated API version: {client.api_version}")
    except DockerConnectionError as e:
        print(f"Daemon not reachable: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
