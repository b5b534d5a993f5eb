import unittest

from fakes import make_port

from icport.data import (
    adjust_selected_index,
    apply_cli_sorting,
    apply_sorting,
    carry_collapsed_state,
    compute_filtered_ports,
    compute_fingerprint,
    format_lifetime,
    get_selected_port,
    move_selection,
    port_matches_filter,
    scroll_offset,
    toggle_group,
)
from icport.models import PortGroup
from icport.state import DashboardState


def two_groups():
    return [
        PortGroup("dev-server", "dev-server", [make_port(3000), make_port(5173, name="vite")]),
        PortGroup("database", "database", [make_port(5432, name="postgres", type="database")]),
    ]


class TestFilteredPortsCache(unittest.TestCase):
    def setUp(self):
        self.state = DashboardState()
        self.groups = two_groups()

    def test_flattens_groups_in_order(self):
        flat, _ = compute_filtered_ports(self.state, self.groups, None)
        self.assertEqual([item.port.port for item in flat], [3000, 5173, 5432])
        self.assertIs(flat[2].group, self.groups[1])

    def test_hit_returns_same_list_object(self):
        flat, cache = compute_filtered_ports(self.state, self.groups, None)
        again, cache2 = compute_filtered_ports(self.state, self.groups, cache)
        self.assertIs(again, flat)
        self.assertIs(cache2, cache)

    def test_miss_on_filter_change(self):
        flat, cache = compute_filtered_ports(self.state, self.groups, None)
        self.state.set_filter("54")
        filtered, cache2 = compute_filtered_ports(self.state, self.groups, cache)
        self.assertIsNot(filtered, flat)
        self.assertEqual([item.port.port for item in filtered], [5432])

    def test_miss_on_sort_change(self):
        flat, cache = compute_filtered_ports(self.state, self.groups, None)
        self.state.sort_by = "pid"
        again, _ = compute_filtered_ports(self.state, self.groups, cache)
        self.assertIsNot(again, flat)

    def test_cached_result_equals_uncached(self):
        self.state.set_filter("node")
        _, cache = compute_filtered_ports(self.state, self.groups, None)
        cached, _ = compute_filtered_ports(self.state, self.groups, cache)
        fresh, _ = compute_filtered_ports(self.state, self.groups, None)
        self.assertEqual(cached, fresh)

    def test_collapsed_group_hides_its_ports(self):
        flat, cache = compute_filtered_ports(self.state, self.groups, None)
        self.groups[0].collapsed = True
        flat, _ = compute_filtered_ports(self.state, self.groups, cache)
        self.assertNotEqual(compute_fingerprint(self.state, self.groups), cache.fingerprint)
        self.assertEqual([item.port.port for item in flat], [5432])

    def test_member_count_change_is_a_miss(self):
        _, cache = compute_filtered_ports(self.state, self.groups, None)
        self.groups[1].ports.append(make_port(6379, name="redis-server", type="database"))
        flat, _ = compute_filtered_ports(self.state, self.groups, cache)
        self.assertEqual(len(flat), 4)


class TestFilterMatch(unittest.TestCase):
    def test_port_substring(self):
        self.assertTrue(port_matches_filter(make_port(3000), "30"))
        self.assertFalse(port_matches_filter(make_port(3000, command="x", name="x"), "80"))

    def test_process_or_command_case_insensitive(self):
        p = make_port(8000, name="Python", command="uvicorn app:main")
        self.assertTrue(port_matches_filter(p, "python"))
        self.assertTrue(port_matches_filter(p, "UVICORN"))

    def test_empty_filter_matches_everything(self):
        self.assertTrue(port_matches_filter(make_port(1), ""))


class TestSorting(unittest.TestCase):
    def group(self):
        return PortGroup("g", "api", [
            make_port(8000, pid=30, name="zsh", user="carol"),
            make_port(4000, pid=10, name="Node", user="bob"),
            make_port(9000, pid=20, name="apache", user="alice"),
        ])

    def test_interactive_sort_keys(self):
        g = self.group()
        apply_sorting([g], "port")
        self.assertEqual([p.port for p in g.ports], [4000, 8000, 9000])
        apply_sorting([g], "pid")
        self.assertEqual([p.pid for p in g.ports], [10, 20, 30])
        apply_sorting([g], "process")
        self.assertEqual([p.process_name for p in g.ports], ["apache", "Node", "zsh"])

    def test_interactive_unknown_key_keeps_order(self):
        g = self.group()
        apply_sorting([g], "user")
        self.assertEqual([p.port for p in g.ports], [8000, 4000, 9000])

    def test_cli_sort_supports_user(self):
        g = self.group()
        apply_cli_sorting([g], "user")
        self.assertEqual([p.user for p in g.ports], ["alice", "bob", "carol"])

    def test_cli_unknown_key_sorts_by_port(self):
        g = self.group()
        apply_cli_sorting([g], "bogus")
        self.assertEqual([p.port for p in g.ports], [4000, 8000, 9000])


class TestSelection(unittest.TestCase):
    def setUp(self):
        state = DashboardState()
        groups = [PortGroup("g", "api", [make_port(p) for p in (1, 2, 3, 4, 5)])]
        self.flat, _ = compute_filtered_ports(state, groups, None)

    def test_move_wraps_at_both_ends(self):
        self.assertEqual(move_selection(self.flat, 0, -1), 4)
        self.assertEqual(move_selection(self.flat, 4, 1), 0)
        self.assertEqual(move_selection(self.flat, 2, 1), 3)

    def test_move_on_empty_list_is_noop(self):
        self.assertEqual(move_selection([], 3, 1), 3)

    def test_adjust_clamps(self):
        self.assertEqual(adjust_selected_index(self.flat, 9), 4)
        self.assertEqual(adjust_selected_index(self.flat, 2), 2)
        self.assertEqual(adjust_selected_index([], 7), 0)
        self.assertEqual(adjust_selected_index(self.flat, -3), 0)

    def test_get_selected_port(self):
        self.assertEqual(get_selected_port(self.flat, 1).port.port, 2)
        self.assertIsNone(get_selected_port([], 0))


class TestGroups(unittest.TestCase):
    def test_toggle_group_flips_selected_group(self):
        groups = two_groups()
        flat, _ = compute_filtered_ports(DashboardState(), groups, None)
        toggle_group(groups, flat[2])
        self.assertTrue(groups[1].collapsed)
        self.assertFalse(groups[0].collapsed)
        toggle_group(groups, None)
        self.assertTrue(groups[1].collapsed)

    def test_carry_collapsed_state(self):
        old = two_groups()
        old[1].collapsed = True
        new = two_groups() + [PortGroup("api", "api", [make_port(8000)])]
        carry_collapsed_state(old, new)
        self.assertEqual([g.collapsed for g in new], [False, True, False])


class TestScrollOffset(unittest.TestCase):
    def test_everything_fits(self):
        self.assertEqual(scroll_offset(5, 3, 10, 8), 0)

    def test_keeps_offset_while_selection_visible(self):
        self.assertEqual(scroll_offset(12, 10, 5, 40), 10)

    def test_recentres_when_selection_leaves_view(self):
        self.assertEqual(scroll_offset(20, 0, 10, 40), 15)
        self.assertEqual(scroll_offset(39, 0, 10, 40), 30)
        self.assertEqual(scroll_offset(0, 30, 10, 40), 0)


class TestFormatLifetime(unittest.TestCase):
    def test_units(self):
        self.assertEqual(format_lifetime(42), "42s")
        self.assertEqual(format_lifetime(125), "2m5s")
        self.assertEqual(format_lifetime(3 * 3600 + 120), "3h2m")
        self.assertEqual(format_lifetime(2 * 86400 + 5 * 3600), "2d5h")


if __name__ == "__main__":
    unittest.main()
