import socket
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import psutil
from fakes import make_port

from icport.models import PROTOCOL_UDP, PortGroup
from icport.ports import (
    PortSource,
    apply_filters_to_groups,
    classify_port,
    find_ports,
)


def conn(port, pid, kind=socket.SOCK_STREAM, status=psutil.CONN_LISTEN, raddr=()):
    return SimpleNamespace(
        fd=-1, family=socket.AF_INET, type=kind,
        laddr=SimpleNamespace(ip="127.0.0.1", port=port),
        raddr=raddr, status=status, pid=pid,
    )


def fake_process(name, cmdline, user="alice", created=0.0):
    proc = MagicMock()
    proc.name.return_value = name
    proc.cmdline.return_value = cmdline
    proc.username.return_value = user
    proc.create_time.return_value = created
    return proc


class TestClassify(unittest.TestCase):
    def test_categories(self):
        self.assertEqual(classify_port(5173, "node", "node vite"), "dev-server")
        self.assertEqual(classify_port(7001, "node", "node ./node_modules/.bin/next dev"), "dev-server")
        self.assertEqual(classify_port(8000, "python", "uvicorn app:app"), "api")
        self.assertEqual(classify_port(15432, "postgres", "postgres -D /data"), "database")
        self.assertEqual(classify_port(6006, "node", "start-storybook"), "storybook")
        self.assertEqual(classify_port(9323, "node", "npx playwright test"), "testing")
        self.assertEqual(classify_port(49152, "mystery", "mystery"), "unexpected")
        self.assertEqual(classify_port(631, "cupsd", "/usr/sbin/cupsd -l"), "other")


class TestProcessPorts(unittest.TestCase):
    def test_groups_in_category_order(self):
        ports = [
            make_port(5432, name="postgres", type="database"),
            make_port(5173, name="vite"),
            make_port(3000, name="node"),
            make_port(631, name="cupsd", type="other"),
        ]
        result = PortSource().process_ports(ports)
        self.assertEqual([g.id for g in result.groups], ["dev-server", "database", "other"])
        self.assertEqual([p.port for p in result.groups[0].ports], [3000, 5173])
        self.assertEqual([p.port for p in result.ports], [3000, 5173, 5432, 631])
        self.assertGreater(result.timestamp, 0)

    def test_empty(self):
        result = PortSource().process_ports([])
        self.assertEqual(result.groups, [])


class TestCliFilters(unittest.TestCase):
    def groups(self):
        return [
            PortGroup("dev-server", "dev-server", [make_port(3000, user="alice"),
                                                   make_port(5173, name="vite", user="bob")]),
            PortGroup("database", "database", [make_port(5432, name="postgres", user="postgres",
                                                         type="database")], collapsed=True),
        ]

    def test_type_glob(self):
        result = apply_filters_to_groups(self.groups(), port_type="data*")
        self.assertEqual([g.id for g in result], ["database"])
        self.assertTrue(result[0].collapsed)

    def test_user_and_process_globs(self):
        result = apply_filters_to_groups(self.groups(), user="b*", process="vi?e")
        self.assertEqual([p.port for g in result for p in g.ports], [5173])

    def test_empty_groups_dropped(self):
        self.assertEqual(apply_filters_to_groups(self.groups(), user="nobody"), [])

    def test_no_filters(self):
        self.assertEqual(len(apply_filters_to_groups(self.groups())), 2)


class TestDetectPorts(unittest.TestCase):
    def setUp(self):
        self.procs = {
            100: fake_process("node", ["node", "server.js"]),
            200: fake_process("postgres", ["postgres", "-D", "/var/lib/pg"], user="postgres"),
            300: fake_process("dnsmasq", [], user="nobody"),
        }

    def process(self, pid):
        if pid not in self.procs:
            raise psutil.NoSuchProcess(pid)
        return self.procs[pid]

    def detect(self, connections):
        with patch("icport.ports.psutil.net_connections", return_value=connections), \
                patch("icport.ports.psutil.Process", side_effect=self.process):
            source = PortSource()
            return source, source.detect_ports()

    def test_listening_sockets_only(self):
        _, ports = self.detect([
            conn(3000, 100),
            conn(3000, 100),  # dual-stack duplicate
            conn(5432, 200),
            conn(51000, 100, status=psutil.CONN_ESTABLISHED, raddr=("1.2.3.4", 443)),
            conn(53, 300, kind=socket.SOCK_DGRAM, status=psutil.CONN_NONE),
            conn(8080, None),
            conn(9999, 999),
        ])
        self.assertEqual([(p.port, p.pid) for p in ports], [(3000, 100), (5432, 200), (53, 300)])
        node = ports[0]
        self.assertEqual(node.command, "node server.js")
        self.assertEqual(node.type, "dev-server")
        self.assertEqual(ports[1].user, "postgres")
        self.assertEqual(ports[2].protocol, PROTOCOL_UDP)
        # empty cmdline falls back to the process name
        self.assertEqual(ports[2].command, "dnsmasq")

    def test_process_info_cached(self):
        source, _ = self.detect([conn(3000, 100), conn(3001, 100)])
        self.assertIn(100, source.process_cache)
        self.assertEqual(self.procs[100].name.call_count, 1)
        source.clear_cache()
        self.assertEqual(source.process_cache, {})

    def test_access_denied_keeps_port(self):
        self.procs[100].name.side_effect = psutil.AccessDenied(100)
        _, ports = self.detect([conn(3000, 100)])
        self.assertEqual(ports[0].process_name, "<denied>")

    def test_find_ports(self):
        source = MagicMock()
        source.detect_ports.return_value = [make_port(3000), make_port(3001), make_port(3000, pid=7)]
        self.assertEqual([p.pid for p in find_ports(source, 3000)], [13000, 7])


if __name__ == "__main__":
    unittest.main()
