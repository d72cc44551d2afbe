"""
Engine and ranking settings, read from settings.yaml in the data directory.
"""
import os

import yaml

from .errors import StorageError

SETTINGS_FILENAME = 'settings.yaml'


def get_default_settings() -> dict:
    """Get default settings."""
    return {
        'min_bracket_size': 4,
        'max_bracket_size': 128,
        'ranking_limit': 50,
        'lock_timeout': 10,
        'ranking_weights': {
            'participants': 0.3,
            'performance': 0.4,
            'tournaments': 50,
            'championships': 100,
        },
    }


def load_settings(data_dir: str) -> dict:
    """Load settings from YAML file, merging with defaults."""
    defaults = get_default_settings()
    path = os.path.join(data_dir, SETTINGS_FILENAME)
    if not os.path.exists(path):
        return defaults
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise StorageError(f'Failed to parse {path}: {e}') from e
    if not data:
        return defaults
    # Merge with defaults to ensure all keys exist
    for key, value in defaults.items():
        if key not in data:
            data[key] = value
        elif isinstance(value, dict):
            data[key] = {**value, **(data[key] or {})}
    return data


def save_settings(data_dir: str, settings: dict):
    """Save settings to YAML file."""
    os.makedirs(data_dir, exist_ok=True)
    with open(os.path.join(data_dir, SETTINGS_FILENAME), 'w', encoding='utf-8') as f:
        yaml.dump(settings, f, default_flow_style=False)
