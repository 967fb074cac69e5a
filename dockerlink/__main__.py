#!/usr/bin/env python3
"""
dockerlink entry point.
Allows running as: python3 -m dockerlink <action>
"""

from dockerlink.cli import main

if __name__ == "__main__":
    main()
