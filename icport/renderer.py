"""
Frame rendering for the dashboard.

Main view frames are either a full repaint or a delta repaint that rewrites
only the rows whose content moved since the previous frame. Modal views are
always full repaints and hand back no snapshot, so the first main view frame
after a modal is full again.
"""
from typing import List, NamedTuple

from .data import format_lifetime, get_selected_port
from .models import FlatPort
from .terminal import clip, display_width, get_category_color, pad, truncate

# First screen row of the port list (row 0 header, row 1 spacer)
LIST_TOP = 2

# x offsets for each column of a port row
COL_SELECTOR = 0
COL_PORT = 2
COL_PROCESS = 9
COL_TYPE = 28
COL_PID = 41
COL_PROTOCOL = 52
COL_USER = 59
COL_LIFETIME = 70
COL_COMMAND = 81

HELP_ITEMS = [
    ("↑/↓", "Navigate ports"),
    ("/", "Search ports by number (like lsof -i :PORT)"),
    ("k", "Kill process (SIGTERM)"),
    ("K", "Force kill process (SIGKILL, asks first)"),
    ("c", "Copy command to clipboard"),
    ("v", "View full command"),
    ("l", "View process logs"),
    ("s", "View statistics"),
    ("d", "Toggle details view"),
    ("1/2/3", "Sort by port/process/pid"),
    ("g", "Toggle group collapse"),
    ("r", "Refresh now"),
    ("?", "Toggle help"),
    ("q", "Quit"),
]

TOAST_COLORS = {
    "red": ("bright_white", "red"),
    "yellow": ("black", "yellow"),
    "cyan": ("bright_white", "cyan"),
}
TOAST_DEFAULT = ("bright_white", "green")


class RenderSnapshot(NamedTuple):
    filtered_ports: List[FlatPort]
    selected_index: int
    filter: str
    sort_by: str
    show_details: bool
    offset: int = 0


def list_bottom(height, show_details):
    """Screen row where the port list stops (exclusive)."""
    return height - (6 if show_details else 4)


def visible_row_budget(height, show_details):
    return max(0, list_bottom(height, show_details) - LIST_TOP)


def row_fields(item):
    """Everything a port row displays; any difference means the row is redrawn."""
    port_info = item.port
    return (
        port_info.port,
        port_info.pid,
        port_info.process_name,
        port_info.command,
        port_info.lifetime,
        port_info.type or item.group.type,
        port_info.user,
        port_info.protocol,
    )


def _split_word(word, width):
    """Column-sized chunks of `word`; a wide character is never cut in half."""
    chunks = []
    while word:
        chunk = clip(word, width) or word[0]
        chunks.append(chunk)
        word = word[len(chunk):]
    return chunks


def wrap_command(command, width):
    """
    Greedy word wrap measured in terminal columns. Words wider than `width`
    are split into width-sized chunks, so no returned line is ever wider
    than `width`.
    """
    if width <= 0:
        return []
    lines = []
    current = ""
    for word in command.split(" "):
        candidate = f"{current} {word}" if current else word
        if display_width(candidate) <= width:
            current = candidate
            continue
        if current:
            lines.append(current)
        if display_width(word) > width:
            lines.extend(_split_word(word, width))
            current = ""
        else:
            current = word
    if current:
        lines.append(current)
    return lines


class DashboardRenderer:
    def __init__(self, terminal):
        self.terminal = terminal
        # "modal", "full" or "delta"; kept for introspection
        self.last_mode = None
        self.last_changed_rows = set()

    def render(self, state, previous, filtered_ports, offset=0):
        """Draw one frame. Returns the snapshot to diff the next frame against."""
        term = self.terminal

        if state.modal is not None:
            term.clear()
            term.hide_cursor()
            if state.show_help:
                self.render_help()
            elif state.show_confirm:
                self.render_confirm(state)
            elif state.show_logs:
                self.render_text_modal(" Process Logs ", state.logs_content, "Press ESC to close")
            elif state.show_command:
                self.render_command(state)
            elif state.show_stats:
                self.render_text_modal(" Statistics ", state.stats_content, "Press ESC or s to close")
            term.render()
            self.last_mode = "modal"
            self.last_changed_rows = set()
            return None

        current = RenderSnapshot(
            filtered_ports=filtered_ports,
            selected_index=state.selected_index,
            filter=state.filter,
            sort_by=state.sort_by,
            show_details=state.show_details,
            offset=offset,
        )

        if self.can_use_delta(state, previous, current):
            self.render_delta(state, previous, current)
        else:
            self.render_full(state, current)
        return current

    def can_use_delta(self, state, previous, current):
        # A toast can sit over any row; always give it a clean frame
        if state.kill_message is not None:
            return False
        # Entering search must show the prompt on a clean frame
        if state.searching and state.search_buffer == "" and state.filter == "":
            return False
        return (
            previous is not None
            and len(previous.filtered_ports) == len(current.filtered_ports)
            and previous.filter == current.filter
            and previous.sort_by == current.sort_by
            and previous.show_details == current.show_details
            and previous.offset == current.offset
        )

    def changed_rows(self, previous, current, height):
        budget = visible_row_budget(height, current.show_details)
        offset = current.offset
        changed = set()
        if previous.selected_index != current.selected_index:
            changed.add(previous.selected_index - offset + LIST_TOP)
            changed.add(current.selected_index - offset + LIST_TOP)
        end = min(len(previous.filtered_ports), len(current.filtered_ports), offset + budget)
        for i in range(offset, end):
            if row_fields(previous.filtered_ports[i]) != row_fields(current.filtered_ports[i]):
                changed.add(i - offset + LIST_TOP)
        return changed

    def render_full(self, state, snapshot):
        term = self.terminal
        term.clear()
        term.hide_cursor()
        self.render_main(state, snapshot)
        term.render()
        self.last_mode = "full"
        self.last_changed_rows = set()

    def render_delta(self, state, previous, current):
        term = self.terminal
        width, height = term.get_screen_size()
        bottom = list_bottom(height, current.show_details)
        changed = self.changed_rows(previous, current, height)

        if len(changed) > visible_row_budget(height, current.show_details) / 2:
            self.render_full(state, current)
            return

        term.hide_cursor()
        self.render_header(state, current.filtered_ports)
        for y in sorted(changed):
            index = y - LIST_TOP + current.offset
            if LIST_TOP <= y < bottom and index < len(current.filtered_ports):
                self.render_port_line(current.filtered_ports[index], index, y, state, current.selected_index)

        if state.show_details:
            selected = get_selected_port(current.filtered_ports, current.selected_index)
            if selected:
                self.render_details(selected)
        self.render_footer(state)
        term.render()
        self.last_mode = "delta"
        self.last_changed_rows = changed

    # --------------------------------------------------
    # Main view pieces
    # --------------------------------------------------
    def render_main(self, state, snapshot):
        width, height = self.terminal.get_screen_size()
        ports = snapshot.filtered_ports
        self.render_header(state, ports)

        bottom = list_bottom(height, state.show_details)
        y = LIST_TOP
        index = snapshot.offset
        while index < len(ports) and y < bottom:
            self.render_port_line(ports[index], index, y, state, snapshot.selected_index)
            index += 1
            y += 1

        selected = get_selected_port(ports, snapshot.selected_index)
        if selected and state.show_details:
            self.render_details(selected)
        self.render_footer(state)
        if state.kill_message:
            self.render_kill_message(state)

    def render_header(self, state, filtered_ports):
        term = self.terminal
        width, _ = term.get_screen_size()

        term.move_to(0, 0)
        term.styled(" icport ", "bold", "white", "blue")
        term.text(" ")
        if state.is_killing and state.killing_port:
            term.color(f"Killing port {state.killing_port}...", "yellow")
            term.text(" | ")
        elif state.filter:
            term.color(f"Filter: {state.filter}", "yellow")
            term.text(" | ")
        term.color(f"Ports: {len(filtered_ports)}", "cyan")
        term.text(" | ")
        term.color(f"Sort: {state.sort_by}", "bright_black")
        term.clear_to_end_of_line()

        if state.current_rank:
            rank_x = width - display_width(state.current_rank) - 1
            if rank_x > term.x:
                term.move_to(rank_x, 0)
                term.color(state.current_rank, "bright_magenta")
                term.clear_to_end_of_line()

    def render_port_line(self, item, index, y, state, selected_index):
        term = self.terminal
        width, _ = term.get_screen_size()
        port_info, group = item.port, item.group

        term.move_to(COL_SELECTOR, y)
        if index == selected_index:
            term.styled("▶", "bold", "yellow")
        else:
            term.text(" ")

        term.move_to(COL_PORT, y)
        term.color(pad(str(port_info.port), 5, "right"), "bright_cyan")

        term.move_to(COL_PROCESS, y)
        term.color(pad(port_info.process_name, 19), "white")

        port_type = port_info.type or group.type or "other"
        term.move_to(COL_TYPE, y)
        term.color(pad(port_type, 12), get_category_color(port_type))

        term.move_to(COL_PID, y)
        pid_str = pad(f"PID:{port_info.pid}", 10)
        if state.is_killing and state.killing_port == port_info.port:
            term.styled(pid_str, "bold", "yellow")
        else:
            term.color(pid_str, "bright_black")

        term.move_to(COL_PROTOCOL, y)
        term.color(pad(port_info.protocol, 6), "bright_black")

        term.move_to(COL_USER, y)
        term.color(pad(port_info.user, 10), "bright_black")

        term.move_to(COL_LIFETIME, y)
        lifetime = format_lifetime(port_info.lifetime) if port_info.lifetime is not None else "--"
        term.color(pad(lifetime, 10), "bright_black")

        if state.show_details:
            cmd_width = width - COL_COMMAND - 1
            if cmd_width > 10:
                term.move_to(COL_COMMAND, y)
                term.styled(truncate(port_info.command, cmd_width), "dim", "bright_black")

        term.clear_to_end_of_line()

    def render_details(self, selected):
        term = self.terminal
        width, height = term.get_screen_size()
        port_info = selected.port
        y = height - 4

        term.move_to(0, y)
        term.styled("─" * width, "dim", "bright_black")

        term.move_to(0, y + 1)
        term.color(f"Port: {port_info.port}", "bright_cyan")
        term.text(" | ")
        term.color(f"PID: {port_info.pid}", "bright_cyan")
        term.text(" | ")
        term.color(f"User: {port_info.user}", "bright_cyan")
        term.text(" | ")
        term.color(f"Protocol: {port_info.protocol}", "bright_cyan")
        if port_info.lifetime is not None:
            term.text(" | ")
            term.color(f"Uptime: {format_lifetime(port_info.lifetime)}", "bright_cyan")
        term.clear_to_end_of_line()

    def render_footer(self, state):
        term = self.terminal
        width, height = term.get_screen_size()

        term.move_to(0, height - 2)
        term.styled("─" * width, "dim", "bright_black")

        term.move_to(0, height - 1)
        if state.searching:
            term.color("Search (numbers only): ", "yellow")
            term.color(state.search_buffer or "_", "white")
            term.text(" ")
            term.color("(Enter to apply, ESC to cancel)", "bright_black")
        else:
            hints = ["/: search", "k: kill", "s: stats", "?: help"]
            for i, hint in enumerate(hints):
                if i:
                    term.text(" | ")
                term.color(hint, "bright_black")
        term.clear_to_end_of_line()

    def render_kill_message(self, state):
        msg = state.kill_message
        if not msg:
            return
        term = self.terminal
        width, height = term.get_screen_size()
        fg, bg = TOAST_COLORS.get(msg.color, TOAST_DEFAULT)

        message = f" {truncate(msg.text(), width - 8)} "
        start_x = max(0, (width - display_width(message)) // 2)
        toast_y = height - 3

        term.move_to(0, toast_y)
        term.clear_line()
        term.move_to(start_x, toast_y)
        term.styled(message, "bold", fg, bg)
        term.clear_to_end_of_line()

    # --------------------------------------------------
    # Modal views
    # --------------------------------------------------
    def render_title(self, title):
        term = self.terminal
        term.move_to(0, 0)
        term.styled(title, "bold", "white", "blue")
        term.clear_to_end_of_line()

    def render_closing_hint(self, hint):
        term = self.terminal
        _, height = term.get_screen_size()
        term.move_to(0, height - 1)
        term.color(hint, "bright_black")
        term.clear_to_end_of_line()

    def render_help(self):
        term = self.terminal
        _, height = term.get_screen_size()
        self.render_title(" Help - Keyboard Shortcuts ")
        y = 2
        for key, desc in HELP_ITEMS:
            if y >= height - 2:
                break
            term.move_to(2, y)
            term.color(pad(key, 8, "right"), "yellow")
            term.text("  ")
            term.text(desc)
            term.clear_to_end_of_line()
            y += 1
        self.render_closing_hint("Press ? or ESC to close")

    def render_confirm(self, state):
        term = self.terminal
        width, height = term.get_screen_size()
        center_y = height // 2
        center_x = width // 2

        box_w = max(4, min(display_width(state.confirm_message) + 4, width - 4))
        start_x = center_x - box_w // 2
        inner = " " * (box_w - 2)

        term.move_to(start_x, center_y - 1)
        term.styled("┌" + "─" * (box_w - 2) + "┐", "bold", "white")
        for y in (center_y, center_y + 1):
            term.move_to(start_x, y)
            term.styled("│", "bold", "white")
            term.text(inner)
            term.styled("│", "bold", "white")
        term.move_to(start_x + 2, center_y)
        term.color(truncate(state.confirm_message, box_w - 4), "white")
        term.move_to(start_x, center_y + 2)
        term.styled("└" + "─" * (box_w - 2) + "┘", "bold", "white")

        term.move_to(start_x + 2, center_y + 3)
        term.color("Press ENTER to confirm, ESC to cancel", "bright_black")

    def render_text_modal(self, title, content, hint):
        term = self.terminal
        width, height = term.get_screen_size()
        self.render_title(title)
        if content:
            y = 2
            for line in content.split("\n"):
                if y >= height - 2:
                    break
                term.move_to(0, y)
                term.text(truncate(line, width))
                term.clear_to_end_of_line()
                y += 1
        self.render_closing_hint(hint)

    def render_command(self, state):
        term = self.terminal
        width, height = term.get_screen_size()
        self.render_title(" Full Command ")
        if state.command_content:
            y = 2
            for line in wrap_command(state.command_content, width):
                if y >= height - 2:
                    break
                term.move_to(0, y)
                term.color(line, "white")
                term.clear_to_end_of_line()
                y += 1
        self.render_closing_hint("Press ESC to close")
