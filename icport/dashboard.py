"""
Interaction loop: turns timer ticks, key presses and resizes into state
transitions, one event at a time, with one render per event.
"""
import curses
import time
import traceback
from enum import Enum
from typing import NamedTuple, Optional

import psutil

from .actions import copy_to_clipboard, get_process_logs, kill_process
from .config import CONFIG, debug_log
from .data import (
    adjust_selected_index,
    apply_cli_sorting,
    apply_sorting,
    carry_collapsed_state,
    compute_filtered_ports,
    get_selected_port,
    move_selection,
    scroll_offset,
    toggle_group,
)
from .gamification import (
    StatsStore,
    check_rank_up,
    format_rank,
    format_stats,
    generate_kill_message,
    get_current_rank,
    rank_up_message,
)
from .models import KillMessage
from .ports import PortSource, apply_filters_to_groups
from .renderer import DashboardRenderer, visible_row_budget
from .state import SORT_KEYS, DashboardState, Modal
from .terminal import Terminal


class EventType(Enum):
    TICK = "tick"
    KEY = "key"
    RESIZE = "resize"
    REDRAW = "redraw"
    QUIT = "quit"


class Event(NamedTuple):
    type: EventType
    key: Optional[int] = None


KEY_ESC = 27
KEY_CTRL_C = 3
ENTER_KEYS = (10, 13, curses.KEY_ENTER)
BACKSPACE_KEYS = (8, 127, curses.KEY_BACKSPACE)

KEY_BINDINGS = {
    curses.KEY_UP: "select_previous",
    curses.KEY_DOWN: "select_next",
    ord('/'): "start_search",
    ord('k'): "kill_selected",
    ord('K'): "force_kill_selected",
    ord('c'): "copy_command",
    ord('v'): "view_command",
    ord('l'): "view_logs",
    ord('s'): "view_stats",
    ord('d'): "toggle_details",
    ord('1'): "sort_by_port",
    ord('2'): "sort_by_process",
    ord('3'): "sort_by_pid",
    ord('g'): "toggle_group",
    ord('r'): "refresh_now",
    ord('?'): "toggle_help",
    ord('q'): "quit",
    KEY_CTRL_C: "force_quit",
}

# Keys that close each modal besides ESC
MODAL_CLOSE_KEYS = {
    Modal.HELP: (ord('?'),),
    Modal.CONFIRM: (ord('n'), ord('N')),
    Modal.LOGS: (ord('l'),),
    Modal.COMMAND: (ord('v'),),
    Modal.STATS: (ord('s'),),
}


class Dashboard:
    def __init__(self, terminal, source=None, killer=kill_process, stats_store=None,
                 logs_provider=get_process_logs, clipboard=copy_to_clipboard, clock=time.time,
                 port_type=None, user=None, process=None, cli_sort=None, interval_ms=None,
                 show_details=None):
        self.terminal = terminal
        self.renderer = DashboardRenderer(terminal)
        self.source = source or PortSource()
        self.killer = killer
        self.stats_store = stats_store or StatsStore()
        self.logs_provider = logs_provider
        self.clipboard = clipboard
        self.clock = clock

        self.filters = {"port_type": port_type, "user": user, "process": process}
        self.cli_sort = cli_sort

        self.state = DashboardState()
        if interval_ms:
            self.state.refresh_interval = int(interval_ms)
        if show_details is not None:
            self.state.show_details = show_details
        if cli_sort in SORT_KEYS:
            self.state.sort_by = cli_sort

        self.filtered_ports_cache = None
        self.previous_snapshot = None
        self.offset = 0
        self.running = False
        self.stopped = False
        self.next_tick_at = None

    # --------------------------------------------------
    # Derived data
    # --------------------------------------------------
    def get_filtered_ports(self):
        flat, self.filtered_ports_cache = compute_filtered_ports(
            self.state, self.state.groups, self.filtered_ports_cache)
        return flat

    def get_selected_port(self):
        return get_selected_port(self.get_filtered_ports(), self.state.selected_index)

    def invalidate_cache(self):
        self.filtered_ports_cache = None

    def clamp_selection(self):
        self.state.selected_index = adjust_selected_index(
            self.get_filtered_ports(), self.state.selected_index)

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------
    def start(self):
        self.running = True
        self.stopped = False
        stats = self.stats_store.load()
        self.state.current_rank = format_rank(get_current_rank(stats.total_kills))
        self.refresh()
        self.render()
        self.schedule_next_tick()

    def stop(self):
        """Cancel the timer and restore the screen. Safe to call more than once."""
        self.running = False
        self.next_tick_at = None
        if self.stopped:
            return
        self.stopped = True
        self.terminal.clear()
        self.terminal.show_cursor()
        self.terminal.render()

    def schedule_next_tick(self):
        if self.running:
            self.next_tick_at = self.clock() + self.state.refresh_interval / 1000.0

    def refresh(self):
        """Reload ports. On failure the last good data stays on screen."""
        try:
            ports = self.source.detect_ports()
            result = self.source.process_ports(ports)
        except Exception as e:
            debug_log(f"REFRESH: Failed to refresh ports: {e}")
            return False

        groups = result.groups
        if any(self.filters.values()):
            groups = apply_filters_to_groups(groups, **self.filters)
        carry_collapsed_state(self.state.groups, groups)

        state = self.state
        state.ports = result.ports
        state.groups = groups
        state.last_update = result.timestamp

        if self.cli_sort:
            apply_cli_sorting(state.groups, self.cli_sort)
        else:
            apply_sorting(state.groups, state.sort_by)

        flat, _ = compute_filtered_ports(state, state.groups, None)
        state.selected_index = adjust_selected_index(flat, state.selected_index)
        self.invalidate_cache()
        return True

    def render(self):
        state = self.state
        if state.expire_kill_message(self.clock()):
            # The toast row is not part of the delta; wipe it with a full frame
            self.previous_snapshot = None

        flat = self.get_filtered_ports()
        state.selected_index = adjust_selected_index(flat, state.selected_index)
        _, height = self.terminal.get_screen_size()
        budget = visible_row_budget(height, state.show_details)
        self.offset = scroll_offset(state.selected_index, self.offset, budget, len(flat))

        self.previous_snapshot = self.renderer.render(state, self.previous_snapshot, flat, self.offset)

    # --------------------------------------------------
    # Event loop
    # --------------------------------------------------
    def dispatch(self, event):
        """Apply one event to completion, then draw once."""
        if event.type is EventType.QUIT:
            self.stop()
            return
        if event.type is EventType.TICK:
            if not self.running:
                return
            self.refresh()
            self.schedule_next_tick()
        elif event.type is EventType.KEY:
            self.handle_key(event.key)
        elif event.type is EventType.RESIZE:
            self.terminal.update_screen_size()
            self.previous_snapshot = None
        if self.running:
            self.render()

    def next_event(self):
        now = self.clock()
        if self.next_tick_at is not None and now >= self.next_tick_at:
            return Event(EventType.TICK)
        wait_ms = int(CONFIG.get("input_poll_ms", 120))
        if self.next_tick_at is not None:
            wait_ms = max(1, min(wait_ms, int((self.next_tick_at - now) * 1000)))
        key = self.terminal.read_key(wait_ms)
        if key == -1:
            expires = self.state.kill_message_expires_at
            if expires is not None and self.clock() > expires:
                return Event(EventType.REDRAW)
            return None
        if key == curses.KEY_RESIZE:
            return Event(EventType.RESIZE)
        return Event(EventType.KEY, key)

    def run(self):
        self.start()
        try:
            while self.running:
                event = self.next_event()
                if event is None:
                    continue
                try:
                    self.dispatch(event)
                except Exception:
                    debug_log(f"DISPATCH: {event} failed\n{traceback.format_exc()}")
                    self.previous_snapshot = None
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()

    # --------------------------------------------------
    # Keyboard
    # --------------------------------------------------
    def handle_key(self, key):
        if key == KEY_CTRL_C:
            self.force_quit()
            return
        if self.state.modal is not None:
            self.handle_modal_key(key)
            return
        if self.state.searching and self.handle_search_key(key):
            return
        action = KEY_BINDINGS.get(key)
        if action:
            getattr(self, action)()

    def handle_modal_key(self, key):
        modal = self.state.modal
        if modal is Modal.CONFIRM and key in ENTER_KEYS:
            action = self.state.confirm_action
            self.exit_modal()
            if action:
                action()
        elif key == KEY_ESC or key in MODAL_CLOSE_KEYS.get(modal, ()):
            self.exit_modal()
        elif key == ord('q') and modal is not Modal.CONFIRM:
            self.quit()

    def handle_search_key(self, key):
        """Catch-all while composing a search. Returns False to let the key through."""
        state = self.state
        if key in (curses.KEY_UP, curses.KEY_DOWN):
            return False
        if ord('0') <= key <= ord('9'):
            state.search_buffer += chr(key)
            state.set_filter(state.search_buffer)
        elif key in BACKSPACE_KEYS:
            state.search_buffer = state.search_buffer[:-1]
            state.set_filter(state.search_buffer)
        elif key in ENTER_KEYS:
            state.end_search(apply=True)
        elif key == KEY_ESC:
            state.end_search(apply=False)
        else:
            return True
        self.invalidate_cache()
        self.clamp_selection()
        return True

    # --------------------------------------------------
    # Actions
    # --------------------------------------------------
    def notify(self, message):
        duration = int(CONFIG.get("toast_duration_ms", 3000))
        self.state.record_kill_message(message, duration, self.clock())

    def enter_modal(self, kind, content=None, action=None):
        self.state.enter_modal(kind, content, action)
        self.previous_snapshot = None

    def exit_modal(self):
        self.state.exit_modal()
        self.previous_snapshot = None

    def select_previous(self):
        self.state.selected_index = move_selection(self.get_filtered_ports(), self.state.selected_index, -1)

    def select_next(self):
        self.state.selected_index = move_selection(self.get_filtered_ports(), self.state.selected_index, 1)

    def start_search(self):
        self.state.begin_search()
        self.invalidate_cache()
        self.clamp_selection()

    def kill_selected(self):
        selected = self.get_selected_port()
        if selected is None:
            return
        if CONFIG.get("confirm_kill"):
            self.confirm_kill(selected.port, force=False)
        else:
            self.perform_kill(selected.port, force=False)

    def force_kill_selected(self):
        selected = self.get_selected_port()
        if selected is not None:
            self.confirm_kill(selected.port, force=True)

    def confirm_kill(self, port_info, force):
        verb = "Force kill" if force else "Kill"
        message = f"{verb} {port_info.process_name} (PID {port_info.pid}) on port {port_info.port}?"
        self.enter_modal(Modal.CONFIRM, message, lambda: self.perform_kill(port_info, force=force))

    def perform_kill(self, port_info, force=False):
        state = self.state
        if state.is_killing:
            return
        state.is_killing = True
        state.killing_port = port_info.port
        # Full frame so the highlighted row is drawn
        self.previous_snapshot = None
        self.render()
        try:
            success = self.killer(port_info.pid, force)
        except (psutil.Error, OSError) as e:
            debug_log(f"KILL: PID {port_info.pid} failed: {e}")
            success = False
        finally:
            state.is_killing = False
            state.killing_port = None

        message = generate_kill_message(port_info, success, force)
        if success:
            previous, stats = self.stats_store.record_kill(port_info, force)
            state.current_rank = format_rank(get_current_rank(stats.total_kills))
            promoted = check_rank_up(previous, stats.total_kills)
            if promoted:
                message = rank_up_message(promoted)
            self.source.clear_cache()
            self.refresh()
        self.invalidate_cache()
        self.notify(message)

    def copy_command(self):
        selected = self.get_selected_port()
        if selected is None:
            return
        if self.clipboard(selected.port.command):
            self.notify(KillMessage("Command copied to clipboard", "📋", "cyan"))
        else:
            self.notify(KillMessage("No clipboard tool found (pbcopy, wl-copy, xclip, xsel)", "❌", "red"))

    def view_command(self):
        selected = self.get_selected_port()
        if selected is not None:
            self.enter_modal(Modal.COMMAND, selected.port.command)

    def view_logs(self):
        selected = self.get_selected_port()
        if selected is not None:
            self.enter_modal(Modal.LOGS, self.logs_provider(selected.port))

    def view_stats(self):
        self.enter_modal(Modal.STATS, format_stats(self.stats_store.load()))

    def toggle_help(self):
        self.enter_modal(Modal.HELP)

    def toggle_details(self):
        self.state.show_details = not self.state.show_details

    def set_sort(self, sort_by):
        # An explicit keypress replaces the one-shot CLI sort
        self.cli_sort = None
        self.state.sort_by = sort_by
        apply_sorting(self.state.groups, sort_by)
        self.invalidate_cache()

    def sort_by_port(self):
        self.set_sort("port")

    def sort_by_process(self):
        self.set_sort("process")

    def sort_by_pid(self):
        self.set_sort("pid")

    def toggle_group(self):
        toggle_group(self.state.groups, self.get_selected_port())
        self.clamp_selection()

    def refresh_now(self):
        self.source.clear_cache()
        self.refresh()
        self.schedule_next_tick()

    def quit(self):
        self.stop()

    def force_quit(self):
        debug_log("QUIT: Ctrl+C")
        self.stop()


def main(stdscr, args=None):
    terminal = Terminal(stdscr)
    terminal.setup()
    dashboard = Dashboard(
        terminal,
        port_type=getattr(args, "type", None),
        user=getattr(args, "user", None),
        process=getattr(args, "process", None),
        cli_sort=getattr(args, "sort", None),
        interval_ms=getattr(args, "interval", None),
        show_details=False if getattr(args, "no_details", False) else None,
    )
    dashboard.run()
