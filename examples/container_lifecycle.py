#!/usr/bin/env python3
"""
Container lifecycle

This example walks a container through its life:
1. Create it with a host config (limits, bind mount, published port)
2. Start it and inspect its state
3. Read its logs
4. Stop it and remove it

Run with: python3 container_lifecycle.py
"""

import os
import sys
import tempfile

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dockerlink import Bind, DockerClient, DockerException, HostConfig, PortBinding

IMAGE = "nginx:alpine"


def print_step(text: str) -> None:
    """Print a step indicator."""
    print(f"[+] {text}")


def print_info(text: str) -> None:
    """Print info text."""
    print(f"    {text}")


def main() -> int:
    client = DockerClient.from_env()
    shared_dir = tempfile.mkdtemp(prefix="dockerlink-")

    if not client.images.exists(IMAGE):
        print_step(f"Pulling {IMAGE}")
        client.images.pull(IMAGE).result()

    host_config = HostConfig.create(
        memory="128m",
        cpus=0.5,
        binds=[Bind(shared_dir, "/usr/share/nginx/html", "ro")],
        port_bindings=[PortBinding.parse("127.0.0.1:8080:80")],
        restart_policy="on-failure:3",
    )

    print_step("Creating container")
    container = client.containers.create(
        IMAGE,
        name="dockerlink-example",
        environment={"NGINX_ENTRYPOINT_QUIET_LOGS": "1"},
        labels={"example": "lifecycle"},
        host_config=host_config,
    )
    print_info(f"id={container.short_id} status={container.status}")

    try:
        print_step("Starting container")
        container.start()
        container.reload()
        print_info(f"status={container.state.status} pid={container.state.pid}")
        print_info(f"memory limit={container.host_config.memory} bytes")
        print_info(f"ports={[str(p) for p in container.host_config.port_bindings]}")

        print_step("Logs")
        print(container.logs(tail=20))

        print_step("Stopping container")
        container.stop(timeout=5)
        print_info(f"exit code={container.wait()}")
    except DockerException as e:
        print(f"Error: {e}")
        return 1
    finally:
        print_step("Removing container")
        container.remove(force=True)

    return 0


if __name__ == "__main__":
    sys.exit(main())
