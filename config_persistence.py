import json
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from config import (
    Config,
    apply_dict_to_dataclass,
    migrate_config,
)
from logging_utils import log_event

CONFIG_DIR_NAME = '.ukutools'


def get_config_dir() -> Path:
    """Get config directory - exe folder when packaged and writable, home dir otherwise."""
    if getattr(sys, 'frozen', False):
        exe_dir = Path(sys.executable).parent
        test_file = exe_dir / '.ukutools_write_test.tmp'
        try:
            with open(test_file, 'w', encoding='utf-8') as f:
                f.write('ok')
            test_file.unlink(missing_ok=True)
            return exe_dir
        except OSError:
            pass

    config_dir = Path.home() / CONFIG_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_file() -> Path:
    return get_config_dir() / 'config.json'


def save_config(config: Config) -> bool:
    """Save config to JSON file. Returns False instead of raising on I/O errors."""
    try:
        config_file = get_config_file()
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, 'w', encoding='utf-8') as f:
            json.dump(asdict(config), f, indent=2)
        log_event("INFO", "Config", "Saved", path=config_file)
        return True
    except (OSError, TypeError, ValueError) as e:
        log_event("ERROR", "Config", "Failed to save", error=e)
        return False


def _set_aside(config_file: Path) -> Optional[Path]:
    """Rename an unreadable config so the next save does not destroy it."""
    backup = config_file.with_name(config_file.name + '.bad')
    try:
        config_file.replace(backup)
    except OSError as e:
        log_event("WARNING", "Config", "Could not set aside unreadable config", error=e)
        return None
    return backup


def load_config() -> Config:
    """Load config from JSON file, returns default if not found or unreadable.

    A file that does not hold a JSON object is renamed to ``config.json.bad``.
    """
    try:
        config_file = get_config_file()
        if not config_file.exists():
            log_event("INFO", "Config", "No saved config found, using defaults")
            return Config()

        with open(config_file, 'r', encoding='utf-8') as f:
            try:
                data = json.load(f)
                problem = None if isinstance(data, dict) else f"top-level {type(data).__name__}"
            except ValueError as e:
                data, problem = None, e
        if problem is not None:
            backup = _set_aside(config_file)
            log_event("ERROR", "Config", "Unreadable config, using defaults",
                      error=problem, backup=backup)
            return Config()

        config = Config()
        apply_dict_to_dataclass(config, data)
        loaded_version = data.get('version')
        migrate_config(config, loaded_version)
        log_event("INFO", "Config", "Loaded", path=config_file, version=config.version)

        if loaded_version != config.version:
            save_config(config)
        return config
    except (OSError, TypeError, ValueError, OverflowError) as e:
        log_event("ERROR", "Config", "Failed to load, using defaults", error=e)
        return Config()
