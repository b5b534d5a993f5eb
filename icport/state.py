"""
Dashboard state: the single owner of UI truth.

Everything needed to draw one frame lives on a DashboardState. Only the
Dashboard orchestrator replaces it; everyone else goes through the methods
below so the modal and toast invariants always hold.
"""
from enum import Enum

from .config import CONFIG

SORT_KEYS = ("port", "process", "pid")


class Modal(Enum):
    HELP = "help"
    CONFIRM = "confirm"
    LOGS = "logs"
    COMMAND = "command"
    STATS = "stats"


class DashboardState:
    def __init__(self):
        self.ports = []
        self.groups = []
        self.selected_index = 0
        self.filter = ""
        self.search_buffer = ""
        self.searching = False
        self.sort_by = CONFIG.get("default_sort", "port") if CONFIG.get("default_sort") in SORT_KEYS else "port"
        self.show_details = bool(CONFIG.get("show_details", True))
        self.refresh_interval = int(CONFIG.get("refresh_interval_ms", 2000))
        self.last_update = 0.0

        # At most one modal at a time; None is the main port list
        self.modal = None
        self.confirm_message = ""
        self.confirm_action = None
        self.logs_content = None
        self.command_content = None
        self.stats_content = None

        self.is_killing = False
        self.killing_port = None

        self.kill_message = None
        self.kill_message_expires_at = None
        self.current_rank = None

    # Read-only projections of `modal`
    @property
    def show_help(self):
        return self.modal is Modal.HELP

    @property
    def show_confirm(self):
        return self.modal is Modal.CONFIRM

    @property
    def show_logs(self):
        return self.modal is Modal.LOGS

    @property
    def show_command(self):
        return self.modal is Modal.COMMAND

    @property
    def show_stats(self):
        return self.modal is Modal.STATS

    def set_filter(self, text):
        """Replace the filter. Caller must invalidate the filtered-ports cache."""
        self.filter = text or ""

    def enter_modal(self, kind, content=None, action=None):
        """Switch to exactly one modal view, dropping any previous modal's content."""
        self.exit_modal()
        self.modal = Modal(kind)
        if self.modal is Modal.CONFIRM:
            self.confirm_message = content or ""
            self.confirm_action = action
        elif self.modal is Modal.LOGS:
            self.logs_content = content
        elif self.modal is Modal.COMMAND:
            self.command_content = content
        elif self.modal is Modal.STATS:
            self.stats_content = content

    def exit_modal(self):
        self.modal = None
        self.confirm_message = ""
        self.confirm_action = None
        self.logs_content = None
        self.command_content = None
        self.stats_content = None

    def record_kill_message(self, message, expires_in_ms, now):
        """Show a toast until `now + expires_in_ms`, replacing any current one."""
        self.kill_message = message
        self.kill_message_expires_at = now + expires_in_ms / 1000.0

    def expire_kill_message(self, now):
        """Drop the toast once its deadline has passed. Returns True if cleared."""
        if self.kill_message is not None and self.kill_message_expires_at is not None:
            if now > self.kill_message_expires_at:
                self.kill_message = None
                self.kill_message_expires_at = None
                return True
        return False

    def begin_search(self):
        self.searching = True
        self.search_buffer = ""
        self.set_filter("")

    def end_search(self, apply):
        self.searching = False
        if not apply:
            self.set_filter("")
        self.search_buffer = ""
