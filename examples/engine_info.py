#!/usr/bin/env python3
"""
Querying engine information

Shows the daemon version and system info.

Run with: python3 engine_info.py
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dockerlink import DockerClient, DockerException


def main() -> int:
    with DockerClient.from_env() as client:
        try:
            version = client.version()
            info = client.info()
        except DockerException as e:
            print(f"Error: {e}")
            return 1

    print(f"Server version: {version.get('Version')}")
    print(f"API version:    {version.get('ApiVersion')} (min {version.get('MinAPIVersion')})")
    print(f"OS/Arch:        {version.get('Os')}/{version.get('Arch')}")
    print(f"Storage driver: {info.get('Driver')}")
    print(f"CPUs:           {info.get('NCPU')}")
    print(f"Memory:         {info.get('MemTotal', 0) // (1024 ** 2)} MiB")
    print(f"Containers:     {info.get('Containers')} ({info.get('ContainersRunning')} running)")
    print(f"Images:         {info.get('Images')}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
