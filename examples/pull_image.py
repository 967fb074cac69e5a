#!/usr/bin/env python3
"""
Pulling an image with progress

The pull runs in the background; progress messages arrive through the
handler hooks while the main thread is free. task.result() waits for the
end of the stream and returns the pulled image (or raises PullError).

Run with: python3 pull_image.py [image]
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dockerlink import DockerClient, DockerException, StreamHandler


class ProgressPrinter(StreamHandler):
    """Prints one line per progress message"""

    def on_start(self, task):
        print(f"[+] {task.name}")

    def on_item(self, item):
        if item.percent is not None:
            print(f"    {item.id}: {item.status} {item.percent:.0f}%")
        else:
            print(f"    {item}")

    def on_error(self, error):
        print(f"[!] {error}")

    def on_complete(self):
        print("[+] Stream complete")


def main() -> int:
    reference = sys.argv[1] if len(sys.argv) > 1 else "alpine:latest"
    client = DockerClient.from_env()

    task = client.images.pull(reference, handler=ProgressPrinter())
    try:
        image = task.result(timeout=600)
    except KeyboardInterrupt:
        # Closing the task closes the connection, which ends the pull stream
        task.close()
        return 130
    except DockerException as e:
        print(f"Pull failed: {e}")
        return 1

    print(f"Image {image.tags} ({image.short_id}), {image.size / (1024 ** 2):.1f} MiB")
    return 0


if __name__ == "__main__":
    sys.exit(main())
