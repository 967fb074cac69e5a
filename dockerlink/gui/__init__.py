"""
Qt helpers - run Docker streams off the GUI thread
"""

from .threads import ContainerLogsThread, ImagePullThread, StreamThread

__all__ = ['ContainerLogsThread', 'ImagePullThread', 'StreamThread']
