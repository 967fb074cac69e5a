#!/usr/bin/env python3
"""
Following container logs

Log frames are delivered as they are written, stdout and stderr kept apart.
Press Ctrl+C to close the stream.

Run with: python3 tail_logs.py <container>
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dockerlink import CallbackHandler, DockerClient, DockerException


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python3 tail_logs.py <container>")
        return 2

    client = DockerClient.from_env()
    try:
        container = client.containers.get(sys.argv[1])
    except DockerException as e:
        print(f"Error: {e}")
        return 1

    def show(frame):
        target = sys.stderr if frame.stream == "stderr" else sys.stdout
        target.write(frame.text)
        target.flush()

    handler = CallbackHandler(
        on_item=show,
        on_error=lambda e: print(f"\n[!] {e}", file=sys.stderr),
        on_complete=lambda: print("\n[+] Log stream closed", file=sys.stderr),
    )

    with container.stream_logs(handler, follow=True, tail=10) as task:
        try:
            task.wait()
        except KeyboardInterrupt:
            pass  # leaving the block closes the stream

    return 1 if task.error else 0


if __name__ == "__main__":
    sys.exit(main())
