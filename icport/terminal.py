"""
Thin drawing layer over a curses window.

The renderer talks to a Terminal in terms of a moving cursor and named colors
and never touches curses itself, so a fake terminal can stand in for it in
tests.
"""
import curses
import unicodedata

# name -> (curses color, bright variant)
COLORS = {
    "black": (curses.COLOR_BLACK, False),
    "red": (curses.COLOR_RED, False),
    "green": (curses.COLOR_GREEN, False),
    "yellow": (curses.COLOR_YELLOW, False),
    "blue": (curses.COLOR_BLUE, False),
    "magenta": (curses.COLOR_MAGENTA, False),
    "cyan": (curses.COLOR_CYAN, False),
    "white": (curses.COLOR_WHITE, False),
    "bright_black": (curses.COLOR_BLACK, True),
    "bright_green": (curses.COLOR_GREEN, True),
    "bright_cyan": (curses.COLOR_CYAN, True),
    "bright_magenta": (curses.COLOR_MAGENTA, True),
    "bright_white": (curses.COLOR_WHITE, True),
}

STYLES = {
    "bold": curses.A_BOLD,
    "dim": curses.A_DIM,
    "reverse": curses.A_REVERSE,
}

CATEGORY_COLORS = {
    "dev-server": "green",
    "api": "blue",
    "database": "magenta",
    "storybook": "yellow",
    "testing": "cyan",
    "unexpected": "red",
}


def get_category_color(category):
    return CATEGORY_COLORS.get(category, "white")


def char_width(char):
    # Zero-width marks, enclosing marks, format chars (ZWJ / VS16)
    if unicodedata.category(char) in ('Mn', 'Me', 'Cf'):
        return 0
    if unicodedata.east_asian_width(char) in ('W', 'F'):
        return 2
    return 1


def display_width(text):
    return sum(char_width(c) for c in text)


def clip(text, width):
    """Hard-cut `text` to at most `width` columns."""
    out = []
    used = 0
    for char in text:
        cw = char_width(char)
        if used + cw > width:
            break
        out.append(char)
        used += cw
    return "".join(out)


def truncate(text, width):
    """Cut `text` to at most `width` columns, marking the cut with an ellipsis."""
    if width <= 0:
        return ""
    if display_width(text) <= width:
        return text
    if width == 1:
        return clip(text, 1)
    return clip(text, width - 1) + "…"


def pad(text, width, align="left"):
    """Truncate then pad to exactly `width` columns."""
    text = truncate(text, width)
    fill = " " * max(0, width - display_width(text))
    return fill + text if align == "right" else text + fill


class Terminal:
    def __init__(self, stdscr):
        self.stdscr = stdscr
        self.x = 0
        self.y = 0
        self.width = 80
        self.height = 24
        self._pairs = {}
        self._colors = False
        self._bright = False
        self.update_screen_size()

    def setup(self):
        """Prepare the window: keypad decoding, colors, hidden cursor."""
        self.stdscr.keypad(True)
        if hasattr(curses, "set_escdelay"):
            curses.set_escdelay(25)
        try:
            if curses.has_colors():
                curses.start_color()
                try:
                    curses.use_default_colors()
                except curses.error:
                    pass
                self._colors = True
                self._bright = curses.COLORS >= 16
        except curses.error:
            self._colors = False
        self.hide_cursor()

    def update_screen_size(self):
        h, w = self.stdscr.getmaxyx()
        self.height, self.width = h, w

    def get_screen_size(self):
        return self.width, self.height

    def _attr(self, fg=None, bg=None, style=None):
        attr = STYLES.get(style, curses.A_NORMAL) if style else curses.A_NORMAL
        if not self._colors or (fg is None and bg is None):
            return attr
        fg_idx, fg_bright = COLORS.get(fg, (-1, False)) if fg else (-1, False)
        bg_idx = COLORS.get(bg, (-1, False))[0] if bg else -1
        if fg_bright:
            if self._bright:
                fg_idx += 8
            elif fg == "bright_black":
                fg_idx = curses.COLOR_WHITE
                attr |= curses.A_DIM
            else:
                attr |= curses.A_BOLD
        key = (fg_idx, bg_idx)
        pair = self._pairs.get(key)
        if pair is None:
            pair = len(self._pairs) + 1
            try:
                curses.init_pair(pair, fg_idx, bg_idx)
            except curses.error:
                return attr
            self._pairs[key] = pair
        return attr | curses.color_pair(pair)

    def _put(self, text, attr):
        if 0 <= self.y < self.height and self.x < self.width:
            visible = clip(text, self.width - self.x)
            try:
                self.stdscr.addstr(self.y, self.x, visible, attr)
            except curses.error:
                # Writing the bottom-right cell moves the cursor off-screen
                pass
        self.x += display_width(text)

    def move_to(self, x, y):
        self.x, self.y = x, y

    def text(self, text):
        self._put(text, curses.A_NORMAL)

    def color(self, text, fg):
        self._put(text, self._attr(fg=fg))

    def styled(self, text, style, fg=None, bg=None):
        self._put(text, self._attr(fg=fg, bg=bg, style=style))

    def clear_to_end_of_line(self):
        if 0 <= self.y < self.height and self.x < self.width:
            try:
                self.stdscr.move(self.y, self.x)
                self.stdscr.clrtoeol()
            except curses.error:
                pass

    def clear_line(self):
        self.x = 0
        self.clear_to_end_of_line()

    def clear(self):
        self.stdscr.erase()
        self.x = self.y = 0

    def hide_cursor(self):
        try:
            curses.curs_set(0)
        except curses.error:
            pass

    def show_cursor(self):
        try:
            curses.curs_set(1)
        except curses.error:
            pass

    def render(self):
        self.stdscr.noutrefresh()
        curses.doupdate()

    def read_key(self, timeout_ms):
        """Next key code, or -1 when nothing arrives within `timeout_ms`."""
        self.stdscr.timeout(timeout_ms)
        return self.stdscr.getch()
