"""Test doubles shared by the test modules."""
import os
import tempfile

# Keep debug.log and stats out of the real home directory
os.environ.setdefault("ICPORT_CONFIG_DIR", tempfile.mkdtemp(prefix="icport-tests-"))

from icport.models import KillStats, PortInfo  # noqa: E402
from icport.ports import PortSource  # noqa: E402


class FakeTerminal:
    """Records what was drawn where, instead of talking to curses."""

    def __init__(self, width=120, height=24):
        self.width = width
        self.height = height
        self.pending_size = None
        self.x = 0
        self.y = 0
        self.keys = []
        self.clears = 0
        self.renders = 0
        self.cursor_shown = 0
        self.touched = set()
        self.screen = [[" "] * width for _ in range(height)]

    def resize(self, width, height):
        self.pending_size = (width, height)

    def update_screen_size(self):
        if self.pending_size:
            self.width, self.height = self.pending_size
            self.pending_size = None
            self.screen = [[" "] * self.width for _ in range(self.height)]

    def get_screen_size(self):
        return self.width, self.height

    def _put(self, text):
        if 0 <= self.y < self.height:
            self.touched.add(self.y)
            for i, ch in enumerate(text):
                if 0 <= self.x + i < self.width:
                    self.screen[self.y][self.x + i] = ch
        self.x += len(text)

    def move_to(self, x, y):
        self.x, self.y = x, y

    def text(self, text):
        self._put(text)

    def color(self, text, fg):
        self._put(text)

    def styled(self, text, style, fg=None, bg=None):
        self._put(text)

    def clear_to_end_of_line(self):
        if 0 <= self.y < self.height:
            self.touched.add(self.y)
            for i in range(max(self.x, 0), self.width):
                self.screen[self.y][i] = " "

    def clear_line(self):
        self.x = 0
        self.clear_to_end_of_line()

    def clear(self):
        self.clears += 1
        self.screen = [[" "] * self.width for _ in range(self.height)]
        self.x = self.y = 0

    def hide_cursor(self):
        pass

    def show_cursor(self):
        self.cursor_shown += 1

    def render(self):
        self.renders += 1

    def read_key(self, timeout_ms):
        return self.keys.pop(0) if self.keys else -1

    # helpers
    def line(self, y):
        return "".join(self.screen[y]).rstrip()

    def dump(self):
        return "\n".join(self.line(y) for y in range(self.height))


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeSource(PortSource):
    """PortSource whose detection returns a canned list."""

    def __init__(self, ports=None):
        super().__init__()
        self.ports = list(ports or [])
        self.fail = False
        self.detect_calls = 0
        self.cache_clears = 0

    def detect_ports(self):
        self.detect_calls += 1
        if self.fail:
            raise RuntimeError("net_connections exploded")
        return list(self.ports)

    def clear_cache(self):
        self.cache_clears += 1
        super().clear_cache()


class FakeStatsStore:
    def __init__(self, total_kills=0):
        self.stats = KillStats(total_kills=total_kills)
        self.recorded = []

    def load(self):
        return self.stats

    def record_kill(self, port_info, force=False, now=None):
        previous = self.stats.total_kills
        self.stats.total_kills += 1
        self.recorded.append((port_info.port, force))
        return previous, self.stats


def make_port(port, pid=None, name="node", command=None, user="alice", type="dev-server", lifetime=60):
    return PortInfo(
        port=port,
        pid=pid if pid is not None else port + 10000,
        process_name=name,
        command=command if command is not None else f"{name} server.js --port {port}",
        user=user,
        type=type,
        lifetime=lifetime,
    )
