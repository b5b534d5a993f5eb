"""
Listening port discovery and classification.

Uses psutil to enumerate sockets and their owning processes, then groups
the result by category for the dashboard.
"""
import fnmatch
import socket
import time

import psutil

from .config import debug_log
from .models import PROTOCOL_TCP, PROTOCOL_UDP, PortGroup, PortInfo, ProcessedPorts

PROCESS_CACHE_TTL = 5.0

# Group order on screen
CATEGORY_ORDER = ["dev-server", "api", "database", "storybook", "testing", "unexpected", "other"]

DEV_SERVER_PORTS = {3000, 3001, 3002, 3003, 4200, 5173, 5174, 8080, 8081, 4321, 1234}
API_PORTS = {4000, 5000, 8000, 8001, 8443, 9000, 9090}
DATABASE_PORTS = {5432, 3306, 27017, 6379, 9200, 5984, 1433, 1521, 11211, 26257, 7687}
STORYBOOK_PORTS = {6006, 6007}

DEV_SERVER_HINTS = ("vite", "webpack", "next dev", "nuxt", "react-scripts", "ng serve", "astro", "parcel")
API_HINTS = ("uvicorn", "gunicorn", "flask", "fastapi", "express", "rails", "django", "nest")
DATABASE_PROCS = ("postgres", "mysqld", "mariadbd", "mongod", "redis-server", "elasticsearch", "memcached")
TESTING_HINTS = ("jest", "vitest", "pytest", "playwright", "cypress", "karma", "mocha")

# Linux default ephemeral range starts here
EPHEMERAL_START = 32768


def classify_port(port, process_name, command):
    """Tag a port with the category its group is built from."""
    proc = process_name.lower()
    cmd = command.lower()
    if port in STORYBOOK_PORTS or "storybook" in cmd:
        return "storybook"
    if port in DATABASE_PORTS or any(p in proc for p in DATABASE_PROCS):
        return "database"
    if any(h in cmd for h in TESTING_HINTS):
        return "testing"
    if port in DEV_SERVER_PORTS or any(h in cmd for h in DEV_SERVER_HINTS):
        return "dev-server"
    if port in API_PORTS or any(h in cmd for h in API_HINTS):
        return "api"
    if port >= EPHEMERAL_START:
        return "unexpected"
    return "other"


def _protocol_name(conn):
    return PROTOCOL_UDP if conn.type == socket.SOCK_DGRAM else PROTOCOL_TCP


def _is_listening(conn):
    if conn.type == socket.SOCK_STREAM:
        return conn.status == psutil.CONN_LISTEN
    # UDP has no LISTEN state; a bound socket without a peer is the closest
    return not conn.raddr


class PortSource:
    def __init__(self):
        self.process_cache = {}

    def clear_cache(self):
        self.process_cache.clear()

    def _process_info(self, pid, now):
        cached = self.process_cache.get(pid)
        if cached and cached[1] > now:
            return cached[0]
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                name = proc.name()
                cmdline = proc.cmdline()
                command = " ".join(cmdline) if cmdline else name
                try:
                    user = proc.username()
                except (psutil.AccessDenied, KeyError):
                    user = "-"
                lifetime = max(0, int(now - proc.create_time()))
        except psutil.NoSuchProcess:
            return None
        except psutil.AccessDenied:
            info = ("<denied>", "", "-", None)
            self.process_cache[pid] = (info, now + PROCESS_CACHE_TTL)
            return info
        info = (name, command, user, lifetime)
        self.process_cache[pid] = (info, now + PROCESS_CACHE_TTL)
        return info

    def detect_ports(self):
        """List listening sockets with their owning processes. Raises psutil.Error."""
        now = time.time()
        seen = set()
        ports = []
        skipped = 0
        for conn in psutil.net_connections(kind="inet"):
            if not conn.laddr or not _is_listening(conn):
                continue
            if not conn.pid:
                skipped += 1
                continue
            protocol = _protocol_name(conn)
            key = (conn.laddr.port, protocol, conn.pid)
            if key in seen:
                continue
            seen.add(key)
            info = self._process_info(conn.pid, now)
            if info is None:
                continue
            name, command, user, lifetime = info
            ports.append(PortInfo(
                port=conn.laddr.port,
                pid=conn.pid,
                process_name=name,
                command=command,
                user=user,
                protocol=protocol,
                type=classify_port(conn.laddr.port, name, command),
                lifetime=lifetime,
            ))
        if skipped:
            debug_log(f"DETECT: {skipped} sockets without a visible pid skipped")
        return ports

    def process_ports(self, ports):
        """Group ports by category, in CATEGORY_ORDER, each sorted by port."""
        by_type = {}
        for port_info in ports:
            by_type.setdefault(port_info.type or "other", []).append(port_info)
        groups = []
        for category in CATEGORY_ORDER + sorted(set(by_type) - set(CATEGORY_ORDER)):
            members = by_type.get(category)
            if members:
                members.sort(key=lambda p: p.port)
                groups.append(PortGroup(id=category, type=category, ports=members))
        ordered = [p for g in groups for p in g.ports]
        return ProcessedPorts(ports=ordered, groups=groups, timestamp=time.time())


def apply_filters_to_groups(groups, port_type=None, user=None, process=None):
    """Apply the CLI glob filters; groups left without ports are dropped."""
    result = []
    for group in groups:
        if port_type and not fnmatch.fnmatch(group.type, port_type):
            continue
        members = [
            p for p in group.ports
            if (not user or fnmatch.fnmatch(p.user, user))
            and (not process or fnmatch.fnmatch(p.process_name, process))
        ]
        if members:
            result.append(PortGroup(id=group.id, type=group.type, ports=members, collapsed=group.collapsed))
    return result


def find_ports(source, port):
    """All detected entries for one port number (CLI kill)."""
    return [p for p in source.detect_ports() if p.port == port]
