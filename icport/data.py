"""
Filtering, memoization, sorting and selection for the port list.

Everything here is a plain function over the state and group lists; the
Dashboard owns the cache value and passes it back in on every call.
"""
import locale
from typing import List, NamedTuple, Optional, Tuple

from .models import FlatPort, PortGroup


class FilteredPortsCache(NamedTuple):
    result: List[FlatPort]
    fingerprint: Tuple


def groups_fingerprint(groups):
    return tuple((g.id, g.collapsed, len(g.ports)) for g in groups)


def compute_fingerprint(state, groups):
    return (groups_fingerprint(groups), state.filter, state.sort_by)


def port_matches_filter(port_info, text):
    """OR-match: port number substring, or case-insensitive process/command substring."""
    if not text:
        return True
    needle = text.lower()
    return (
        text in str(port_info.port)
        or needle in port_info.process_name.lower()
        or needle in port_info.command.lower()
    )


def compute_filtered_ports(state, groups, cache) -> Tuple[List[FlatPort], FilteredPortsCache]:
    """
    Flatten visible groups into (port, group) rows.

    Returns the cached list object untouched when the fingerprint has not
    moved; this is called on every render so the hit path must stay cheap.
    """
    fingerprint = compute_fingerprint(state, groups)
    if cache is not None and cache.fingerprint == fingerprint:
        return cache.result, cache

    flat = []
    for group in groups:
        if group.collapsed:
            continue
        for port_info in group.ports:
            if state.filter and not port_matches_filter(port_info, state.filter):
                continue
            flat.append(FlatPort(port_info, group))

    new_cache = FilteredPortsCache(flat, fingerprint)
    return flat, new_cache


def get_selected_port(filtered_ports, selected_index) -> Optional[FlatPort]:
    if not filtered_ports:
        return None
    index = min(max(selected_index, 0), len(filtered_ports) - 1)
    return filtered_ports[index]


# --------------------------------------------------
# Sorting
# --------------------------------------------------
def _text_key(value):
    return locale.strxfrm(value.casefold())


_SORT_KEYS = {
    "port": lambda p: p.port,
    "process": lambda p: _text_key(p.process_name),
    "pid": lambda p: p.pid,
}

_CLI_SORT_KEYS = dict(_SORT_KEYS, user=lambda p: _text_key(p.user))


def apply_sorting(groups: List[PortGroup], sort_by):
    """Interactive sort, per group. An unknown key keeps the current order."""
    key = _SORT_KEYS.get(sort_by)
    if key is None:
        return
    for group in groups:
        group.ports.sort(key=key)


def apply_cli_sorting(groups: List[PortGroup], sort_by):
    """One-shot CLI sort, per group. Accepts `user`; unknown keys sort by port."""
    key = _CLI_SORT_KEYS.get(sort_by, _SORT_KEYS["port"])
    for group in groups:
        group.ports.sort(key=key)


# --------------------------------------------------
# Selection / groups
# --------------------------------------------------
def move_selection(filtered_ports, current_index, direction):
    """Move the cursor by `direction`, wrapping at both ends."""
    if not filtered_ports:
        return current_index
    new_index = current_index + direction
    if new_index < 0:
        new_index = len(filtered_ports) - 1
    elif new_index >= len(filtered_ports):
        new_index = 0
    return new_index


def adjust_selected_index(filtered_ports, current_index):
    if current_index >= len(filtered_ports):
        return max(0, len(filtered_ports) - 1)
    return max(0, current_index)


def toggle_group(groups, selected):
    if selected is None:
        return
    for group in groups:
        if group.id == selected.group.id:
            group.collapsed = not group.collapsed
            return


def carry_collapsed_state(old_groups, new_groups):
    """Keep user-toggled collapse flags for groups that survive a refresh."""
    collapsed = {g.id: g.collapsed for g in old_groups}
    for group in new_groups:
        if group.id in collapsed:
            group.collapsed = collapsed[group.id]
    return new_groups


def scroll_offset(selected, offset, visible_rows, total):
    """Keep `selected` inside the viewport, recentring when it falls out."""
    if visible_rows <= 0 or total <= visible_rows:
        return 0
    if offset <= selected < offset + visible_rows:
        return min(offset, total - visible_rows)
    return min(max(selected - visible_rows // 2, 0), total - visible_rows)


def format_lifetime(seconds):
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m{seconds % 60}s"
    if seconds < 86400:
        return f"{seconds // 3600}h{(seconds % 3600) // 60}m"
    return f"{seconds // 86400}d{(seconds % 86400) // 3600}h"
