"""Application configuration and persisted user settings."""

import json
import logging
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

IS_WINDOWS = platform.system() == 'Windows'

APP_NAME = 'WebPlayerTray'

DEFAULT_PLAYER_URL = 'https://music.163.com/st/webplayer'
DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120 Safari/537.36'
)
DEFAULT_STATE_INTERVAL_MS = 4000
HTTP_CACHE_MAX_BYTES = 200 * 1024 * 1024


def default_data_dir() -> Path:
    if IS_WINDOWS:
        return Path.home() / 'AppData' / 'Local' / APP_NAME
    xdg = os.getenv('XDG_DATA_HOME')
    base = Path(xdg) if xdg else Path.home() / '.local' / 'share'
    return base / APP_NAME


def parse_int_env(name: str, default: int, min_value: Optional[int] = None,
                  max_value: Optional[int] = None) -> int:
    raw = os.getenv(name)
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        value = default
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value


def parse_level_env(name: str, default: str) -> str:
    """Level name from the environment, or default when logging does not know it."""
    value = os.getenv(name, default).strip().upper()
    if isinstance(logging.getLevelName(value), int):
        return value
    return default


@dataclass(frozen=True)
class AppConfig:
    player_url: str
    allowed_host: str
    data_dir: Path
    state_interval_ms: int
    user_agent: str
    log_level: str
    file_log_level: str

    @property
    def state_file(self) -> Path:
        return self.data_dir / 'player_state.json'

    @property
    def settings_file(self) -> Path:
        return self.data_dir / 'config.json'

    @property
    def storage_dir(self) -> Path:
        return self.data_dir / 'storage'

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / 'cache'

    @property
    def log_file(self) -> Path:
        return self.data_dir / 'logs' / 'webplayer-tray.log'


def load_config() -> AppConfig:
    """Builds the config from the environment and creates the data dir."""
    player_url = os.getenv('WEBPLAYER_URL', DEFAULT_PLAYER_URL).strip() or DEFAULT_PLAYER_URL
    allowed_host = os.getenv('WEBPLAYER_ALLOWED_HOST', '').strip() or urlparse(player_url).hostname or ''
    data_dir_env = os.getenv('WEBPLAYER_DATA_DIR', '').strip()
    data_dir = Path(data_dir_env).expanduser() if data_dir_env else default_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / 'logs').mkdir(exist_ok=True)

    return AppConfig(
        player_url=player_url,
        allowed_host=allowed_host,
        data_dir=data_dir,
        state_interval_ms=parse_int_env(
            'WEBPLAYER_STATE_INTERVAL_MS', DEFAULT_STATE_INTERVAL_MS,
            min_value=500, max_value=60000,
        ),
        user_agent=os.getenv('WEBPLAYER_USER_AGENT', DEFAULT_USER_AGENT),
        log_level=parse_level_env('LOG_LEVEL', 'INFO'),
        file_log_level=parse_level_env('FILE_LOG_LEVEL', 'DEBUG'),
    )


# ============================================================================
# USER SETTINGS
# ============================================================================

class KeyValueStore:
    """Minimal persistence interface for user preferences."""

    def get(self, key, default=None):
        raise NotImplementedError

    def set(self, key, value):
        raise NotImplementedError


class JsonKeyValueStore(KeyValueStore):
    """Stores preferences in a JSON file, merging every update into it."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> dict:
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding='utf-8'))
            except (OSError, ValueError):
                return {}
            if isinstance(data, dict):
                return data
        return {}

    def update(self, updates: dict):
        current = self.load()
        current.update(updates)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(current, indent=2), encoding='utf-8')

    def get(self, key, default=None):
        return self.load().get(key, default)

    def set(self, key, value):
        self.update({key: value})


@dataclass
class Settings:
    close_to_tray: bool = True


def load_settings(store: KeyValueStore) -> Settings:
    value = store.get('close_to_tray', True)
    return Settings(close_to_tray=value if isinstance(value, bool) else True)


def save_settings(store: KeyValueStore, settings: Settings):
    store.set('close_to_tray', settings.close_to_tray)
