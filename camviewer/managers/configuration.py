"""
Configuration Manager for camviewer.

Application settings with JSON persistence, dot-notation access and
validation. Values the core needs are handed out as plain immutable objects
(IndexSettings, CompositionSpec) rather than read from here on demand.
"""

import copy
import json
from typing import Any, Dict, List, Optional
from pathlib import Path
from PyQt6.QtCore import QObject, pyqtSignal

from .base import BaseManager
from .. import utils
from ..ffmpeg_builder import CompositionSpec, DEFAULT_LABELS
from ..models import IndexSettings


class ConfigurationManagerSignals(QObject):
    """Signals for ConfigurationManager."""
    setting_changed = pyqtSignal(str, object)  # setting_key, new_value
    settings_loaded = pyqtSignal()
    settings_saved = pyqtSignal()
    settings_reset = pyqtSignal()
    validation_failed = pyqtSignal(str, str)  # setting_key, error_message
    configuration_corrupted = pyqtSignal(str)  # error_message


class ConfigurationManager(BaseManager):
    """
    Manages application configuration.

    Handles:
    - Storage roots and the clip folder conventions
    - Which camera feeds are played and which one is primary
    - Renderer and logging settings
    - Persistence to ``<base_dir>/config/settings.json``
    """

    DEFAULT_SETTINGS = {
        'app': {
            'version': '1.0.0',
        },

        # Where clips are looked for and how their folders are laid out
        'storage': {
            'roots': [],
            'auto_detect': True,
            'expected_name': 'TeslaCam',
            'metadata_file': 'event.json',
            'thumbnail_file': 'thumb.png',
        },

        'cameras': {
            'feeds': list(utils.DEFAULT_CAMERAS),
            'primary': utils.MANDATORY_CAMERA,
            'mandatory': utils.MANDATORY_CAMERA,
            'labels': dict(DEFAULT_LABELS),
        },

        'playback': {
            'preload_next': True,
            'mute_secondary': True,
        },

        'renderer': {
            'ffmpeg_path': '',
            'resolution': '256x192',
            'padding': 30,
            'duration_s': 60,
            'preset': 'ultrafast',
            'container': 'mpegts',
            'buffer_delay_s': 2.0,
            'poll_interval_ms': 100,
            'timeout_s': 30,
        },

        'logging': {
            'default_level': 'INFO',
            'debug_mode': False,
            'console_enabled': True,
            'file_enabled': True,
            'max_file_size_mb': 10,
            'max_backup_count': 5,
        },
    }

    REQUIRED_SECTIONS = ['storage', 'cameras', 'playback', 'renderer', 'logging']

    def __init__(self, dependency_container, base_dir: Optional[Path] = None, parent=None):
        """
        Initialize the ConfigurationManager.

        Args:
            dependency_container: Container holding shared services
            base_dir: Directory holding ``config`` and ``logs``; ``~/.camviewer`` by default
            parent: Optional QObject parent
        """
        super().__init__(dependency_container, parent)

        self.signals = ConfigurationManagerSignals()
        self.settings: Dict[str, Any] = self._get_default_settings()

        self.base_dir = Path(base_dir) if base_dir else Path.home() / '.camviewer'
        self.config_dir = self.base_dir / 'config'
        self.logs_dir = self.base_dir / 'logs'
        self.settings_file = self.config_dir / 'settings.json'

        self.validation_rules = self._setup_validation_rules()

    def initialize(self) -> bool:
        try:
            self._create_directory_structure()
            self._load_configuration()

            if not self._validate_configuration():
                self.logger.warning("Configuration validation failed, using defaults")
                self.signals.configuration_corrupted.emit("Invalid settings replaced by defaults")
                self._reset_to_defaults()

            self.save_configuration()
            self._mark_initialized()
            return True

        except Exception as e:
            self.handle_error(e, "ConfigurationManager initialization")
            return False

    def cleanup(self) -> None:
        try:
            self._mark_cleanup_started()
            if self._initialized:
                self.save_configuration()
        except Exception as e:
            self.handle_error(e, "ConfigurationManager cleanup")

    # ========================================
    # Configuration Management
    # ========================================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration setting value.

        Args:
            key: Setting key in dot notation (e.g. 'cameras.primary')
            default: Value returned when the setting doesn't exist

        Returns:
            Setting value or default
        """
        value = self.settings
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def set_setting(self, key: str, value: Any, save: bool = True) -> bool:
        """
        Set a configuration setting value.

        Args:
            key: Setting key in dot notation
            value: New value to set
            save: Whether to immediately save to disk

        Returns:
            bool: True if the value passed validation and was stored
        """
        if not self._validate_setting(key, value):
            return False

        keys = key.split('.')
        current = self.settings
        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]

        old_value = current.get(keys[-1])
        current[keys[-1]] = value

        if old_value != value:
            self.signals.setting_changed.emit(key, value)
            self.logger.debug(f"Setting updated: {key} = {value}")

        if save:
            return self.save_configuration()
        return True

    def reset_setting(self, key: str, save: bool = True) -> bool:
        """Put one setting back to its default value."""
        return self.set_setting(key, copy.deepcopy(self._get_default_setting(key)), save)

    def get_all_settings(self) -> Dict[str, Any]:
        return copy.deepcopy(self.settings)

    def save_configuration(self) -> bool:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.settings_file, 'w', encoding='utf-8') as f:
                json.dump(self.settings, f, indent=2, ensure_ascii=False)
            self.signals.settings_saved.emit()
            return True
        except OSError as e:
            self.handle_error(e, "save_configuration")
            return False

    def load_configuration(self) -> bool:
        """Reload settings from disk, replacing the in-memory values."""
        self._load_configuration()
        if not self._validate_configuration():
            self._reset_to_defaults()
            return False
        self.signals.settings_loaded.emit()
        return True

    def reset_to_defaults(self) -> bool:
        self._reset_to_defaults()
        self.signals.settings_reset.emit()
        self.logger.info("Configuration reset to defaults")
        return self.save_configuration()

    # ========================================
    # Values handed to the core
    # ========================================

    def get_storage_roots(self) -> List[str]:
        return [r for r in self.get_setting('storage.roots', []) if r]

    def get_feeds(self) -> List[str]:
        """Configured cameras in play order, primary first."""
        feeds = list(self.get_setting('cameras.feeds', utils.DEFAULT_CAMERAS))
        primary = self.get_setting('cameras.primary', utils.MANDATORY_CAMERA)
        if primary in feeds:
            feeds.remove(primary)
        return [primary] + feeds

    def indexing_settings(self) -> IndexSettings:
        return IndexSettings(
            mandatory_camera=self.get_setting('cameras.mandatory', utils.MANDATORY_CAMERA),
            metadata_file=self.get_setting('storage.metadata_file', 'event.json'),
            thumbnail_file=self.get_setting('storage.thumbnail_file', 'thumb.png'),
        )

    def composition_spec(self) -> CompositionSpec:
        return CompositionSpec(
            resolution=self.get_setting('renderer.resolution', '256x192'),
            padding=self.get_setting('renderer.padding', 30),
            labels=dict(self.get_setting('cameras.labels', DEFAULT_LABELS)),
            duration_s=self.get_setting('renderer.duration_s', 60),
            preset=self.get_setting('renderer.preset', 'ultrafast'),
            container=self.get_setting('renderer.container', 'mpegts'),
        )

    # ========================================
    # Helper Methods
    # ========================================

    def _load_configuration(self) -> None:
        """Load configuration from file, filling gaps from the defaults."""
        self.settings = self._get_default_settings()
        if not self.settings_file.exists():
            self.logger.debug("Using default configuration")
            return

        try:
            with open(self.settings_file, 'r', encoding='utf-8') as f:
                stored = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            self.logger.warning(f"Error loading configuration: {e}, using defaults")
            self.signals.configuration_corrupted.emit(str(e))
            return

        if not isinstance(stored, dict):
            self.logger.warning("Configuration file is not an object, using defaults")
            self.signals.configuration_corrupted.emit("Configuration file is not an object")
            return

        for section, values in stored.items():
            if isinstance(values, dict) and isinstance(self.settings.get(section), dict):
                self.settings[section].update(values)
            else:
                self.settings[section] = values
        self.logger.debug(f"Configuration loaded from {self.settings_file}")

    def _get_default_settings(self) -> Dict[str, Any]:
        return copy.deepcopy(self.DEFAULT_SETTINGS)

    def _get_default_setting(self, key: str) -> Any:
        value = self.DEFAULT_SETTINGS
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return None
        return value

    def _validate_configuration(self) -> bool:
        for section in self.REQUIRED_SECTIONS:
            if not isinstance(self.settings.get(section), dict):
                self.logger.warning(f"Missing configuration section: {section}")
                return False

        for key, rule in self.validation_rules.items():
            if not self._validate_setting_with_rule(key, self.get_setting(key), rule):
                return False
        return True

    def _validate_setting(self, key: str, value: Any) -> bool:
        if key in self.validation_rules:
            return self._validate_setting_with_rule(key, value, self.validation_rules[key])
        return True

    def _validate_setting_with_rule(self, key: str, value: Any, rule: Dict[str, Any]) -> bool:
        error = None
        if 'type' in rule and (not isinstance(value, rule['type']) or (isinstance(value, bool) and rule['type'] is not bool)):
            error = f"Invalid type for {key}: expected {rule['type']}, got {type(value).__name__}"
        elif 'min' in rule and value < rule['min']:
            error = f"Value for {key} below minimum: {value} < {rule['min']}"
        elif 'max' in rule and value > rule['max']:
            error = f"Value for {key} above maximum: {value} > {rule['max']}"
        elif 'choices' in rule and value not in rule['choices']:
            error = f"Invalid choice for {key}: {value} not in {rule['choices']}"
        elif 'items' in rule and not all(isinstance(v, rule['items']) for v in value):
            error = f"Invalid items for {key}: expected {rule['items']}"
        elif rule.get('non_empty') and not value:
            error = f"{key} must not be empty"

        if error:
            self.logger.warning(error)
            self.signals.validation_failed.emit(key, error)
            return False
        return True

    def _setup_validation_rules(self) -> Dict[str, Dict[str, Any]]:
        return {
            'storage.roots': {'type': list, 'items': str},
            'storage.auto_detect': {'type': bool},
            'storage.expected_name': {'type': str, 'non_empty': True},
            'cameras.feeds': {'type': list, 'items': str, 'non_empty': True},
            'cameras.primary': {'type': str, 'non_empty': True},
            'cameras.mandatory': {'type': str, 'non_empty': True},
            'playback.preload_next': {'type': bool},
            'playback.mute_secondary': {'type': bool},
            'renderer.padding': {'type': int, 'min': 0, 'max': 500},
            'renderer.duration_s': {'type': int, 'min': 1, 'max': 3600},
            'renderer.buffer_delay_s': {'type': (int, float), 'min': 0, 'max': 30},
            'renderer.poll_interval_ms': {'type': int, 'min': 10, 'max': 5000},
            'renderer.timeout_s': {'type': (int, float), 'min': 1, 'max': 600},
            'renderer.container': {'type': str, 'choices': ['mpegts', 'matroska', 'mp4']},
            'logging.default_level': {'type': str, 'choices': ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']},
            'logging.max_file_size_mb': {'type': int, 'min': 1, 'max': 1024},
            'logging.max_backup_count': {'type': int, 'min': 0, 'max': 100},
        }

    def _reset_to_defaults(self) -> None:
        self.settings = self._get_default_settings()

    def _create_directory_structure(self) -> None:
        for directory in [self.base_dir, self.config_dir, self.logs_dir]:
            directory.mkdir(parents=True, exist_ok=True)

    # ========================================
    # Directory Access Methods (for other managers)
    # ========================================

    def get_base_directory(self) -> Path:
        return self.base_dir

    def get_config_directory(self) -> Path:
        return self.config_dir

    def get_logs_directory(self) -> Path:
        return self.logs_dir
