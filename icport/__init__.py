#!/usr/bin/env python3
import sys
import os
import curses
import argparse

from .actions import kill_process
from .config import debug_log, init_config
from .dashboard import main
from .gamification import (
    StatsStore,
    check_rank_up,
    format_rank,
    generate_kill_message,
    get_current_rank,
    rank_up_message,
)
from .ports import PortSource, find_ports

MIN_COLS = 80
MIN_ROWS = 12

EPILOG = """\
keyboard shortcuts (TUI mode):
  ↑/↓        navigate ports          /       search by port number
  k          kill (SIGTERM)          K       force kill (SIGKILL)
  c          copy command            v       view full command
  l          view process logs       s       kill statistics
  d          toggle details          g       collapse/expand group
  1/2/3      sort by port/process/pid
  r          refresh now             ?       help
  q          quit                    Ctrl+C  force quit

examples:
  icport --type "dev-*" --user "j*"
  icport --sort user
  icport kill 3000 --force
"""


# --------------------------------------------------
# Checks
# --------------------------------------------------
def check_python_version():
    if sys.version_info < (3, 8):
        print("Python 3.8 or newer is required.")
        sys.exit(1)


def _get_app_version():
    v_file = os.path.join(os.path.dirname(__file__), "VERSION")
    try:
        with open(v_file) as f:
            return f.read().strip()
    except OSError:
        return "0.0.0"


def check_and_show_terminal_size_then_exit():
    try:
        size = os.get_terminal_size()
    except OSError:
        # Not a TTY; let curses report the problem
        return
    cols, rows = size.columns, size.lines
    if cols < MIN_COLS or rows < MIN_ROWS:
        print("┌──────────────────────────────────────────────┐")
        print("│           TERMINAL SIZE TOO SMALL            │")
        print("├──────────────────────────────────────────────┤")
        print(f"│  Current size:  {cols:4d} cols × {rows:3d} lines       │")
        print(f"│  Minimum:       {MIN_COLS:4d} cols × {MIN_ROWS:3d} lines       │")
        print("└──────────────────────────────────────────────┘")
        print("\nPlease resize your terminal and try again.\n")
        sys.exit(1)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="icport",
        description="Terminal dashboard for monitoring and managing network ports.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--version", action="version", version=f'icport {_get_app_version()}')
    parser.add_argument('-t', '--type', help='Filter by port type (glob, e.g. "dev-*")')
    parser.add_argument('-u', '--user', help='Filter by username (glob)')
    parser.add_argument('-p', '--process', help='Filter by process name (glob)')
    parser.add_argument('-s', '--sort', choices=["port", "process", "pid", "user"],
                        help='Sort ports by field (default: port)')
    parser.add_argument('--interval', type=int, metavar='MS',
                        help='Refresh interval in milliseconds')
    parser.add_argument('--no-details', action='store_true', help='Start with the details view hidden')

    sub = parser.add_subparsers(dest="command")
    kill_p = sub.add_parser("kill", help="Kill process(es) using the specified port")
    kill_p.add_argument("port_arg", nargs="?", type=int, metavar="port")
    kill_p.add_argument("--port", type=int, dest="port_opt", help="Port number (alternative syntax)")
    kill_p.add_argument("-f", "--force", action="store_true", help="SIGKILL instead of SIGTERM")

    args = parser.parse_args(argv)
    if args.command == "kill":
        args.port = args.port_opt if args.port_opt is not None else args.port_arg
        if args.port is None:
            kill_p.error("a port number is required")
    if args.interval is not None and args.interval <= 0:
        parser.error("--interval must be a positive number of milliseconds")
    return args


# --------------------------------------------------
# `icport kill <port>`
# --------------------------------------------------
def run_kill_command(port, force=False, source=None, killer=kill_process, stats_store=None):
    """Kill every process on `port`. Returns the process exit status."""
    source = source or PortSource()
    stats_store = stats_store or StatsStore()
    try:
        targets = find_ports(source, port)
    except Exception as e:
        print(f"Error: cannot list ports: {e}", file=sys.stderr)
        return 1
    if not targets:
        print(f"No process is listening on port {port}.", file=sys.stderr)
        return 1

    status = 0
    seen = set()
    killed = set()
    for port_info in targets:
        if port_info.pid in seen:
            continue
        seen.add(port_info.pid)
        success = killer(port_info.pid, force)
        message = generate_kill_message(port_info, success, force)
        if success:
            killed.add(port_info.pid)
            previous, stats = stats_store.record_kill(port_info, force)
            promoted = check_rank_up(previous, stats.total_kills)
            print(message.text())
            if promoted:
                print(rank_up_message(promoted).text())
        else:
            status = 1
            print(f"{message.text()} (PID {port_info.pid}, {port_info.process_name})", file=sys.stderr)
    if killed:
        debug_log(f"CLI-KILL: port {port} -> {sorted(killed)}")
        print(f"Rank: {format_rank(get_current_rank(stats_store.load().total_kills))}")
    return status


def cli_entry():
    """terminal command 'icport' entry point"""
    check_python_version()
    init_config()
    args = parse_args()

    if args.command == "kill":
        sys.exit(run_kill_command(args.port, force=args.force))

    # Check terminal size after args so --help works in small terminals
    check_and_show_terminal_size_then_exit()
    curses.wrapper(main, args)


if __name__ == "__main__":
    cli_entry()
