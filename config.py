"""
Game settings for Magic Memory.

Constants used across the game live here, together with the small
settings.json file the client reads at startup. Environment variables
override the file locations and the log level.
"""
import json
import logging
import os

logger = logging.getLogger(__name__)

# Settings management
SETTINGS_FILE = os.environ.get('MEMORY_SETTINGS_FILE', 'settings.json')
DB_FILE = os.environ.get('MEMORY_DB_FILE', 'memory_game.db')
LOG_LEVEL = os.environ.get('MEMORY_LOG_LEVEL', 'INFO')

# Game timing (seconds)
SETTLE_DELAY = 1.0  # how long a resolved pair stays visible
TICK_INTERVAL = 1.0
MAX_TIMER_DURATION = 600

# Persistence
HISTORY_LIMIT = 100

# Ordered master list of card faces. Decks take the first N entries.
CARD_FACES = [
    "helmet", "potion", "ring", "scroll", "shield", "sword",
    "bow", "crown", "gem", "key", "lantern", "map",
    "amulet", "axe", "boots", "coin", "dagger", "staff",
]

DEFAULT_SETTINGS = {
    "db_file": DB_FILE,
    "fps": 60,
}


def load_settings(path=None):
    """Load settings from the settings file, falling back to defaults."""
    path = path or SETTINGS_FILE
    settings = dict(DEFAULT_SETTINGS)
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", path, e)
            return settings
        if isinstance(data, dict):
            settings.update(data)
    return settings


def save_settings(settings, path=None):
    """Save settings to the settings file."""
    path = path or SETTINGS_FILE
    with open(path, 'w') as f:
        json.dump(settings, f, indent=2)


def configure_logging(level=None):
    """Set up root logging once for the client process."""
    level = level or LOG_LEVEL
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
