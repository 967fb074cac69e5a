"""
dockerlink - thin client for the Docker Engine API
"""

from .docker_api import *  # noqa: F401,F403
from .docker_api import __all__

__version__ = '1.0.0'
