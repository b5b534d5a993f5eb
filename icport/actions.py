import subprocess
from datetime import datetime
from shutil import which

import psutil

from .config import debug_log

KILL_WAIT_SECONDS = 3.0

CLIPBOARD_COMMANDS = [
    ["pbcopy"],
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
]


def kill_process(pid, force=False):
    """Send SIGTERM (SIGKILL when `force`) and wait for the process to go away."""
    if not pid or pid <= 0:
        return False
    try:
        proc = psutil.Process(pid)
        cmd = " ".join(proc.cmdline()) or proc.name()
        debug_log(f"KILL: {'SIGKILL' if force else 'SIGTERM'} -> PID {pid} ({cmd})")
        if force:
            proc.kill()
        else:
            proc.terminate()
        proc.wait(timeout=KILL_WAIT_SECONDS)
        return True
    except psutil.NoSuchProcess:
        debug_log(f"KILL: PID {pid} already gone")
        return False
    except psutil.AccessDenied:
        debug_log(f"KILL: Access denied for PID {pid}")
        return False
    except psutil.TimeoutExpired:
        debug_log(f"KILL: PID {pid} still alive after {KILL_WAIT_SECONDS}s")
        return False


def copy_to_clipboard(text):
    """Pipe `text` into the first clipboard tool found on PATH."""
    for cmd in CLIPBOARD_COMMANDS:
        if which(cmd[0]) is None:
            continue
        try:
            subprocess.run(cmd, input=text, text=True, check=True, timeout=2,
                           stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
            return True
        except (OSError, subprocess.SubprocessError) as e:
            debug_log(f"CLIPBOARD: {cmd[0]} failed: {e}")
    return False


def _journal_query(cmd):
    """Run a journalctl command and return non-empty lines."""
    try:
        res = subprocess.run(cmd, capture_output=True, text=True, timeout=2)
    except (OSError, subprocess.SubprocessError):
        return []
    if res.stdout and res.stdout.strip():
        # Filter out journalctl meta-lines
        return [l for l in res.stdout.strip().splitlines() if not l.startswith("-- ")]
    return []


def _process_summary(port_info):
    lines = [f"No journal entries for PID {port_info.pid} ({port_info.process_name}).", ""]
    try:
        proc = psutil.Process(port_info.pid)
        with proc.oneshot():
            started = datetime.fromtimestamp(proc.create_time()).strftime("%Y-%m-%d %H:%M:%S")
            lines.append(f"Status:   {proc.status()}")
            lines.append(f"Started:  {started}")
            lines.append(f"Parent:   {proc.ppid()}")
            lines.append(f"Threads:  {proc.num_threads()}")
            try:
                lines.append(f"CWD:      {proc.cwd()}")
            except psutil.AccessDenied:
                pass
            mem = proc.memory_info().rss // 1024
            lines.append(f"RSS:      {mem} KB")
    except psutil.NoSuchProcess:
        lines.append("Process is no longer running.")
    except psutil.AccessDenied:
        lines.append("Access denied while reading process details.")
    lines.append(f"Command:  {port_info.command}")
    return lines


def get_process_logs(port_info, max_lines=200):
    """Recent log lines for the process behind a port, as one text block."""
    lines = []
    if which("journalctl"):
        lines = _journal_query(["journalctl", f"_PID={port_info.pid}", "-n", str(max_lines), "--no-pager"])
    if not lines:
        lines = _process_summary(port_info)
    return "\n".join(lines[-max_lines:])
