# subocr_core/config.py
# -*- coding: utf-8 -*-
import json
import logging
from pathlib import Path

from .models.settings import AppSettings

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path.home() / '.config' / 'subocr' / 'settings.json'

class AppConfig:
    def __init__(self, settings_path=None, persist=True):
        self.settings_path = Path(settings_path) if settings_path else DEFAULT_SETTINGS_PATH
        self.persist = persist
        self.defaults = AppSettings().to_dict()
        self.settings = self.defaults.copy()
        self.load()

    def load(self):
        changed = False
        if self.settings_path.exists():
            try:
                with open(self.settings_path, 'r', encoding='utf-8') as f:
                    loaded_settings = json.load(f)
                if not isinstance(loaded_settings, dict):
                    raise ValueError('settings file must hold a JSON object')

                for key, default_value in self.defaults.items():
                    if key not in loaded_settings:
                        loaded_settings[key] = default_value
                        changed = True
                self.settings = loaded_settings
            except (json.JSONDecodeError, ValueError, OSError) as e:
                logger.warning(f"Ignoring unreadable settings file {self.settings_path}: {e}")
                self.settings = self.defaults.copy()
                changed = True
        else:
            self.settings = self.defaults.copy()
            changed = True

        if changed and self.persist:
            self.save()

    def save(self):
        try:
            keys_to_save = self.defaults.keys()
            settings_to_save = {k: self.settings.get(k) for k in keys_to_save if k in self.settings}
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.settings_path, 'w', encoding='utf-8') as f:
                json.dump(settings_to_save, f, indent=4)
        except OSError as e:
            logger.warning(f"Error saving settings: {e}")

    def get(self, key: str, default=None):
        return self.settings.get(key, default)

    def set(self, key: str, value):
        self.settings[key] = value

    def update(self, overrides: dict):
        """Apply non-None overrides, e.g. from command line flags."""
        for key, value in overrides.items():
            if value is not None:
                self.settings[key] = value

    def to_settings(self) -> AppSettings:
        return AppSettings.from_config(self.settings)
