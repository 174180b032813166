"""Simple YAML configuration loader for RecordRTC."""

import os
import yaml
from pathlib import Path
from typing import Dict, Any
import logging

from ..capture.settings import resolve_capture_settings
from ..models.capture import CaptureKind, CaptureSettings, UploadDestination
from ..upload.pipeline import UploadPipeline

logger = logging.getLogger(__name__)


DEFAULT_QUALITY = {
    CaptureKind.AUDIO: {"bit_rate": 128000},
    CaptureKind.VIDEO: {"bit_rate": 2500000, "width": 640, "height": 480},
    CaptureKind.SCREEN: {"bit_rate": 2500000, "width": 1280, "height": 720},
}


class RecordRTCConfig:
    """RecordRTC configuration loader."""

    def __init__(self, config_path: str):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file
        """
        self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping")

        # Resolve relative paths
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        # Resolve log file path
        if 'logging' in config and 'file_path' in config['logging']:
            log_path = config['logging']['file_path']
            if not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'limits.max_upload_size').

        Args:
            key_path: Dot-separated key path (e.g., 'video.width')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'upload.sesskey')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        # Set the final value
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def capture_settings(self, kind: CaptureKind) -> CaptureSettings:
        """Resolve capture settings for a media kind from the configured quality."""
        kind = CaptureKind(kind)
        defaults = DEFAULT_QUALITY[kind]
        return resolve_capture_settings(
            kind,
            self.get(f'{kind.value}.bit_rate', defaults['bit_rate']),
            self.get(f'{kind.value}.width', defaults.get('width')),
            self.get(f'{kind.value}.height', defaults.get('height')),
        )

    def upload_destination(self, repository_id: int, draft_item_id: int, context_id: int) -> UploadDestination:
        return UploadDestination(
            repository_id=int(repository_id),
            draft_item_id=int(draft_item_id),
            context_id=int(context_id),
            max_upload_size=int(self.get('limits.max_upload_size', -1)),
        )

    def upload_pipeline(self) -> UploadPipeline:
        """Create an upload pipeline - CRASHES if the endpoint is not configured."""
        wwwroot = self.get('upload.wwwroot')
        if not wwwroot:
            raise ValueError("Upload endpoint (upload.wwwroot) not configured")

        return UploadPipeline(
            wwwroot=wwwroot,
            sesskey=str(self.get('upload.sesskey', '')),
            timeout=float(self.get('upload.timeout', 300)),
            chunk_size=int(self.get('upload.chunk_size', 65536)),
        )
