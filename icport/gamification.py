"""Killer ranks, kill messages and the persistent kill counter."""
import os
import re
import time
from datetime import datetime

import yaml

from .config import CONFIG_DIR, debug_log
from .models import KillerRank, KillMessage, KillStats

# --------------------------------------------------
# Ranks
# --------------------------------------------------
KILLER_RANKS = [
    KillerRank("Junior Killer", 1, "🌱"),
    KillerRank("Associate Killer", 10, "⭐"),
    KillerRank("Mid-Level Killer", 25, "🔥"),
    KillerRank("Senior Killer", 50, "💀"),
    KillerRank("Lead Killer", 100, "⚡"),
    KillerRank("Principal Killer", 250, "👑"),
    KillerRank("Staff Killer", 500, "🏆"),
    KillerRank("Distinguished Killer", 1000, "🌟"),
]


def get_current_rank(total_kills):
    """Highest rank reached; everyone starts as the first rank."""
    current = KILLER_RANKS[0]
    for rank in KILLER_RANKS:
        if total_kills >= rank.min_kills:
            current = rank
        else:
            break
    return current


def get_next_rank(total_kills):
    for rank in KILLER_RANKS:
        if total_kills < rank.min_kills:
            return rank
    return None


def check_rank_up(previous_kills, current_kills):
    previous_rank = get_current_rank(previous_kills)
    current_rank = get_current_rank(current_kills)
    if current_rank.name != previous_rank.name:
        return current_rank
    return None


def format_rank(rank):
    return f"{rank.emoji} {rank.name}" if rank.emoji else rank.name


# --------------------------------------------------
# Kill messages
# --------------------------------------------------
SPECIAL_PORTS = {
    3000: "🔥",
    3001: "🔥",
    5173: "⚡",  # Vite
    4200: "💚",  # Angular
    8080: "🌐",
    8081: "🌐",
    8000: "🐍",
    8001: "🐍",
    5000: "💎",
    4000: "💎",
    6006: "📚",  # Storybook
    9229: "🐛",  # Node debugger
}

PROCESS_PATTERNS = [
    (re.compile(r"node", re.I), "⚡", "Node process destroyed!"),
    (re.compile(r"python", re.I), "🐍", "Python process eliminated!"),
    (re.compile(r"java", re.I), "☕", "Java process terminated!"),
    (re.compile(r"ruby", re.I), "💎", "Ruby process killed!"),
    (re.compile(r"go", re.I), "🐹", "Go process eliminated!"),
    (re.compile(r"rust", re.I), "🦀", "Rust process destroyed!"),
]

TYPE_MESSAGES = {
    "dev-server": ("Dev server terminated!", "💀"),
    "api": ("API server eliminated!", "🎯"),
    "database": ("Database connection killed!", "🗄️"),
    "storybook": ("Storybook closed!", "📚"),
    "testing": ("Test process destroyed!", "🧪"),
    "unexpected": ("Unexpected port eliminated!", "⚠️"),
    "other": ("Process terminated!", "💥"),
}


def generate_kill_message(port_info, success, force=False):
    if not success:
        return KillMessage("Failed to kill process", "❌", "red")
    if force:
        return KillMessage("Force kill successful!", "💥", "yellow")

    emoji = SPECIAL_PORTS.get(port_info.port)
    if emoji:
        return KillMessage(f"Port {port_info.port} has been eliminated!", emoji, "cyan")

    for pattern, emoji, message in PROCESS_PATTERNS:
        if pattern.search(port_info.process_name) or pattern.search(port_info.command):
            return KillMessage(message, emoji, "green")

    message, emoji = TYPE_MESSAGES.get(port_info.type or "other", TYPE_MESSAGES["other"])
    return KillMessage(message, emoji, "green")


def rank_up_message(rank):
    return KillMessage(f"Promoted to {rank.name}!", rank.emoji or "🎉", "yellow")


# --------------------------------------------------
# Persistent stats
# --------------------------------------------------
class StatsStore:
    """Kill counters kept in a YAML file under the config directory."""

    def __init__(self, path=None):
        self.path = path or os.path.join(CONFIG_DIR, "stats.yaml")

    def load(self):
        if not os.path.isfile(self.path):
            return KillStats()
        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            debug_log(f"STATS: Error loading {self.path}: {e}")
            return KillStats()
        if not isinstance(data, dict):
            return KillStats()
        known = KillStats.__dataclass_fields__
        return KillStats(**{k: v for k, v in data.items() if k in known})

    def save(self, stats):
        try:
            os.makedirs(os.path.dirname(self.path), exist_ok=True)
            with open(self.path, "w") as f:
                yaml.safe_dump(vars(stats), f)
        except OSError as e:
            debug_log(f"STATS: Error saving {self.path}: {e}")

    def record_kill(self, port_info, force=False, now=None):
        """Count one successful kill. Returns (previous_total, updated_stats)."""
        now = time.time() if now is None else now
        stats = self.load()
        previous = stats.total_kills

        stats.total_kills += 1
        kind = port_info.type or "other"
        stats.kills_by_type[kind] = stats.kills_by_type.get(kind, 0) + 1
        if stats.first_kill_timestamp is None:
            stats.first_kill_timestamp = now
        stats.last_kill_timestamp = now
        if force:
            stats.force_kills += 1

        count = stats.kills_by_port.get(port_info.port, 0) + 1
        stats.kills_by_port[port_info.port] = count
        if count > stats.most_killed_port_count:
            stats.most_killed_port = port_info.port
            stats.most_killed_port_count = count

        self.save(stats)
        return previous, stats


def _fmt_ts(ts):
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")


def format_stats(stats):
    """Multi-line report shown in the stats view."""
    rank = get_current_rank(stats.total_kills)
    lines = [
        f"Rank:            {format_rank(rank)}",
        f"Total kills:     {stats.total_kills}",
        f"Force kills:     {stats.force_kills}",
    ]
    nxt = get_next_rank(stats.total_kills)
    if nxt:
        lines.append(f"Next rank:       {format_rank(nxt)} ({nxt.min_kills - stats.total_kills} to go)")
    if stats.most_killed_port is not None:
        lines.append(f"Most killed:     port {stats.most_killed_port} ({stats.most_killed_port_count}x)")
    lines.append(f"First kill:      {_fmt_ts(stats.first_kill_timestamp)}")
    lines.append(f"Last kill:       {_fmt_ts(stats.last_kill_timestamp)}")
    if stats.kills_by_type:
        lines.append("")
        lines.append("Kills by type:")
        for kind, count in sorted(stats.kills_by_type.items(), key=lambda kv: (-kv[1], kv[0])):
            lines.append(f"  {kind:<14} {count}")
    return "\n".join(lines)
