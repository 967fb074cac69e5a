"""
Settings Manager for dockerlink
Manages connection settings stored in a JSON file, overridable from the environment
"""

import json
import os
import logging
from typing import Any, Dict, Mapping, Optional

from .docker_api.endpoint import DEFAULT_TIMEOUT, ClientConfig
from .docker_api.exceptions import DockerConfigError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    'docker_host': '',
    'api_version': '',
    'tls_verify': False,
    'cert_path': '',
    'timeout': DEFAULT_TIMEOUT,
    'log_level': 'INFO',
}

# Settings key -> environment variable that overrides it
ENV_OVERRIDES = {
    'docker_host': 'DOCKER_HOST',
    'api_version': 'DOCKER_API_VERSION',
    'tls_verify': 'DOCKER_TLS_VERIFY',
    'cert_path': 'DOCKER_CERT_PATH',
    'timeout': 'DOCKER_CLIENT_TIMEOUT',
    'log_level': 'DOCKERLINK_LOG_LEVEL',
}


class SettingsManager:
    """Manager for client settings"""
    
    @staticmethod
    def get_user_settings_path() -> str:
        """Get path to user settings file"""
        if os.name == 'nt':  # Windows
            base_dir = os.environ.get('APPDATA', os.path.expanduser('~'))
            data_dir = os.path.join(base_dir, 'dockerlink')
        else:  # macOS, Linux
            data_dir = os.path.join(
                os.environ.get('XDG_DATA_HOME', os.path.expanduser('~/.local/share')),
                'dockerlink'
            )
        return os.path.join(data_dir, 'settings.json')
    
    def __init__(self, settings_file: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None):
        """
        Initialize settings manager
        
        Args:
            settings_file: JSON settings path (default: per-user data dir)
            environ: Environment used for overrides (default: os.environ)
        """
        self.settings_file = settings_file or self.get_user_settings_path()
        self.environ = os.environ if environ is None else environ
        self.settings: Dict[str, Any] = {}
        
        self.load()
    
    def load(self):
        """Load settings from user file, falling back to defaults"""
        self.settings = DEFAULT_SETTINGS.copy()
        
        if not os.path.exists(self.settings_file):
            logger.debug(f"No settings file at {self.settings_file}, using defaults")
            return
        
        try:
            with open(self.settings_file, 'r', encoding='utf-8') as f:
                loaded_settings = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not load settings from {self.settings_file}: {e}")
            return
        
        if not isinstance(loaded_settings, dict):
            logger.warning(f"Ignoring settings file {self.settings_file}: expected a JSON object")
            return
        
        # Merge with defaults (user settings override defaults)
        self.settings.update(loaded_settings)
        logger.debug(f"Settings loaded from {self.settings_file}")
    
    def save(self) -> bool:
        """Save settings to file"""
        try:
            os.makedirs(os.path.dirname(self.settings_file) or '.', exist_ok=True)
            with open(self.settings_file, 'w', encoding='utf-8') as f:
                json.dump(self.settings, f, indent=4, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Error saving settings: {e}")
            return False
        
        logger.info(f"Settings saved to {self.settings_file}")
        return True
    
    def get(self, key: str, default: Any = None) -> Any:
        """
        Get setting value, environment override first
        
        Args:
            key: Setting key
            default: Default value if key not found
        
        Returns:
            Setting value
        """
        env_name = ENV_OVERRIDES.get(key)
        if env_name and self.environ.get(env_name):
            return self.environ[env_name]
        return self.settings.get(key, default)
    
    def set(self, key: str, value: Any, save: bool = True):
        """
        Set setting value
        
        Args:
            key: Setting key
            value: Setting value
            save: Save to file immediately
        """
        self.settings[key] = value
        
        if save:
            self.save()
    
    def update(self, settings_dict: Dict[str, Any], save: bool = True):
        """Update multiple settings"""
        self.settings.update(settings_dict)
        
        if save:
            self.save()
    
    def reset_to_defaults(self, save: bool = True):
        """Reset all settings to defaults"""
        self.settings = DEFAULT_SETTINGS.copy()
        
        if save:
            self.save()
            logger.info("Settings reset to defaults")
    
    def get_all(self) -> Dict[str, Any]:
        """Get all settings"""
        return self.settings.copy()
    
    def client_config(self, **overrides) -> ClientConfig:
        """
        Build a ClientConfig: file settings < environment < overrides
        
        Overrides that are None are ignored, so CLI flags can be passed as-is.
        """
        values = {
            'docker_host': self.get('docker_host') or None,
            'api_version': self.get('api_version') or None,
            'tls_verify': _as_bool(self.get('tls_verify')),
            'cert_path': self.get('cert_path') or None,
        }
        timeout = self.get('timeout') or DEFAULT_TIMEOUT
        try:
            values['timeout'] = float(timeout)
        except (TypeError, ValueError) as e:
            raise DockerConfigError(f"Invalid timeout setting: {timeout!r}") from e
        
        if values['cert_path'] and not values['tls_verify']:
            values['tls'] = True
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ClientConfig(**values)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ('', '0', 'false', 'no', 'off')
    return bool(value)
