import os
import json
import time

CONFIG_DIR = os.environ.get("ICPORT_CONFIG_DIR") or os.path.expanduser("~/.config/icport")

# Debug logging
DEBUG_LOG_PATH = os.path.join(CONFIG_DIR, "debug.log")

CONFIG = {
    "refresh_interval_ms": 2000,
    "toast_duration_ms": 3000,
    "show_details": True,
    "default_sort": "port",
    "confirm_kill": False,
    "input_poll_ms": 120,
}


def debug_log(msg):
    """Write a timestamped message to the debug log."""
    try:
        os.makedirs(os.path.dirname(DEBUG_LOG_PATH), exist_ok=True)
        with open(DEBUG_LOG_PATH, "a") as f:
            f.write(f"[{time.strftime('%Y-%m-%d %H:%M:%S')}] {msg}\n")
    except OSError:
        pass


def config_path():
    return os.path.join(CONFIG_DIR, "config.json")


def init_config():
    """Merge the saved config into CONFIG, writing defaults on first run."""
    if not os.path.exists(CONFIG_DIR):
        try:
            os.makedirs(CONFIG_DIR, exist_ok=True)
        except OSError as e:
            debug_log(f"CONFIG: Cannot create {CONFIG_DIR}: {e}")
            return
    path = config_path()
    if os.path.exists(path):
        try:
            with open(path, 'r') as f:
                saved = json.load(f)
            if isinstance(saved, dict):
                CONFIG.update({k: v for k, v in saved.items() if k in CONFIG})
        except (OSError, ValueError) as e:
            debug_log(f"CONFIG: Error loading: {e}")
    else:
        save_config()


def save_config():
    try:
        with open(config_path(), 'w') as f:
            json.dump(CONFIG, f, indent=2)
    except OSError as e:
        debug_log(f"CONFIG: Error saving: {e}")
