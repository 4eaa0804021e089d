"""Tests for the dialogue graph layout: grid, labels, categories, edges."""

import math

import pytest

from taletree.dialogue.layout import (
    LABEL_MAX_CHARS,
    MIN_HORIZONTAL_GAP,
    MIN_VERTICAL_GAP,
    MIN_ZOOM,
    LayoutLabels,
    grid_position,
    grid_shape,
    layout_dialogue_tree,
    viewport_hint,
)
from taletree.models import DialogueTree
from tests.fixtures import make_scenario_tree, make_summarized_tree, make_tree


def _chain(n: int) -> DialogueTree:
    """root plus n - 1 nodes in a single chain."""
    edges = [("root", "n1")] + [(f"n{i}", f"n{i + 1}") for i in range(1, n - 1)]
    return make_tree(edges[: n - 1])


class TestGridShape:
    @pytest.mark.parametrize("n", [1, 2, 3])
    def test_small_trees_use_one_column(self, n):
        shape = grid_shape(n)
        assert shape.columns == 1
        assert shape.rows == n

    @pytest.mark.parametrize("n,columns", [(4, 2), (5, 2), (7, 3), (10, 3), (13, 4), (30, 5)])
    def test_columns_round_sqrt(self, n, columns):
        assert grid_shape(n).columns == columns

    @pytest.mark.parametrize("n", range(4, 60))
    def test_rows_cover_all_nodes(self, n):
        shape = grid_shape(n)
        assert shape.columns == math.floor(math.sqrt(n) + 0.5)
        assert shape.rows == math.ceil(n / shape.columns)

    def test_gaps_shrink_to_floor(self):
        small, large = grid_shape(2), grid_shape(200)
        assert small.horizontal_gap > large.horizontal_gap
        assert small.vertical_gap > large.vertical_gap
        assert large.horizontal_gap == MIN_HORIZONTAL_GAP
        assert large.vertical_gap == MIN_VERTICAL_GAP

    @pytest.mark.parametrize("n", [1, 2, 3, 4, 5, 9, 10, 17, 33])
    def test_every_node_gets_its_own_cell(self, n):
        shape = grid_shape(n)
        assert shape.columns * shape.rows >= n
        cells = {(p.x, p.y) for p in (grid_position(i, shape) for i in range(n))}
        assert len(cells) == n

    def test_grid_centered_on_origin(self):
        shape = grid_shape(9)
        positions = [grid_position(i, shape) for i in range(9)]
        assert sum(p.x for p in positions) == pytest.approx(0)
        assert sum(p.y for p in positions) == pytest.approx(0)


class TestViewportHint:
    def test_zoom_decreases_with_size(self):
        assert viewport_hint(1).zoom_factor > viewport_hint(100).zoom_factor

    def test_zoom_floored(self):
        assert viewport_hint(10**20).zoom_factor == MIN_ZOOM


class TestLayoutShape:
    def test_root_only_tree(self):
        graph = layout_dialogue_tree(DialogueTree.create("char-1"))
        assert len(graph.nodes) == 1
        assert graph.edges == []
        assert graph.nodes[0].label == "root"
        assert graph.nodes[0].position.x == 0
        assert graph.nodes[0].position.y == 0
        assert graph.diagnostics == []

    def test_one_edge_per_non_root_node(self):
        graph = layout_dialogue_tree(make_scenario_tree())
        assert len(graph.nodes) == 5
        assert {(e.source, e.target) for e in graph.edges} == {
            ("root", "A"), ("A", "B"), ("A", "C"), ("root", "D"),
        }
        assert {e.id for e in graph.edges} >= {"edge-A-B", "edge-root-A"}

    @pytest.mark.parametrize("n", [1, 4, 12])
    def test_node_positions_unique(self, n):
        graph = layout_dialogue_tree(_chain(n))
        assert len(graph.nodes) == n
        assert len({(node.position.x, node.position.y) for node in graph.nodes}) == n

    def test_dangling_parent_edge_skipped(self):
        tree = make_scenario_tree()
        tree.nodes["X"] = tree.nodes["B"].model_copy(
            update={"node_id": "X", "parent_node_id": "missing"}
        )
        graph = layout_dialogue_tree(tree)
        assert len(graph.nodes) == 6
        assert all(e.target != "X" for e in graph.edges)
        assert any("missing" in d for d in graph.diagnostics)


class TestCategories:
    def test_path_scenario(self):
        """root -> A -> B with B current: both edges on the path."""
        tree = make_tree([("root", "A"), ("A", "B")], current="B")
        graph = layout_dialogue_tree(tree)
        edges = {e.target: e for e in graph.edges}

        assert graph.current_path == ["B", "A"]
        assert edges["A"].category == "root_source"
        assert edges["A"].is_current_path
        assert edges["B"].category == "current_path"
        assert edges["B"].is_current_path

    def test_node_categories(self):
        graph = layout_dialogue_tree(make_scenario_tree(current="B"))
        categories = {n.id: n.category for n in graph.nodes}
        assert categories == {
            "root": "root",
            "A": "current_path",
            "B": "current_path",
            "C": "other",
            "D": "other",
        }

    def test_off_path_edges(self):
        graph = layout_dialogue_tree(make_scenario_tree(current="B"))
        edges = {e.target: e for e in graph.edges}
        assert edges["C"].category == "other_path"
        assert not edges["C"].is_current_path
        assert edges["D"].category == "root_source"
        assert not edges["D"].is_current_path

    def test_edge_on_path_iff_both_endpoints_on_path(self):
        for current in ["A", "B", "C", "D", "root"]:
            tree = make_scenario_tree(current=current)
            graph = layout_dialogue_tree(tree)
            members = set(graph.current_path) | {current}
            for edge in graph.edges:
                if edge.source == "root":
                    continue
                expected = edge.source in members and edge.target in members
                assert edge.is_current_path is expected

    def test_current_path_highlights(self):
        graph = layout_dialogue_tree(make_scenario_tree(current="C"))
        on_path = {n.id for n in graph.nodes if n.is_current_path}
        assert on_path == {"A", "C"}

    def test_edge_styles_follow_category(self):
        graph = layout_dialogue_tree(make_scenario_tree(current="B"))
        edges = {e.target: e for e in graph.edges}
        assert edges["A"].style.stroke != edges["B"].style.stroke
        assert edges["B"].style.stroke_width > edges["C"].style.stroke_width
        assert edges["C"].style.opacity < 1

    def test_broken_path_reported(self):
        tree = make_scenario_tree(current="B")
        tree.nodes["A"] = tree.nodes["A"].model_copy(update={"parent_node_id": "missing"})
        graph = layout_dialogue_tree(tree)
        assert any("does not reach the root" in d for d in graph.diagnostics)


class TestLabels:
    def test_starting_points_numbered_newest_first(self):
        """10 nodes, 2 root children: the newer one is 1/2."""
        tree = make_tree([
            ("root", "P1"), ("P1", "a"), ("a", "b"), ("b", "c"),
            ("root", "P2"), ("P2", "d"), ("d", "e"), ("e", "f"), ("f", "g"),
        ])
        graph = layout_dialogue_tree(tree)
        labels = {n.id: n.label for n in graph.nodes}

        assert len(graph.nodes) == 10
        assert labels["P1"] == "Starting point 2/2"
        assert labels["P2"] == "Starting point 1/2"

    def test_single_starting_point_has_no_total(self):
        tree = make_tree([("root", "A")])
        labels = {n.id: n.label for n in layout_dialogue_tree(tree).nodes}
        assert labels["A"] == "Starting point 1"

    def test_summary_preferred(self):
        tree = make_summarized_tree({"B": "meet -> fight -> flee"})
        node = next(n for n in layout_dialogue_tree(tree).nodes if n.id == "B")
        assert node.label == "meet -> fight -> flee"
        assert node.label_steps == ["meet", "fight", "flee"]

    def test_long_reply_truncated(self):
        tree = make_tree([("root", "A")])
        tree.append_turn("A", assistant_response="x" * 40, node_id="B")
        node = next(n for n in layout_dialogue_tree(tree).nodes if n.id == "B")
        assert node.label == "x" * LABEL_MAX_CHARS + "..."
        assert node.full_content == "x" * 40

    def test_empty_reply_is_system_message(self):
        tree = make_tree([("root", "A")])
        tree.append_turn("A", node_id="B")
        node = next(n for n in layout_dialogue_tree(tree).nodes if n.id == "B")
        assert node.label == "System message"

    def test_localized_labels(self):
        tree = make_tree([("root", "A"), ("root", "B")])
        tree.append_turn("A", node_id="C")
        labels = LayoutLabels(starting_point="起点 ", system_message="系统消息")
        graph = layout_dialogue_tree(tree, labels=labels)
        by_id = {n.id: n.label for n in graph.nodes}
        assert by_id["A"] == "起点 2/2"
        assert by_id["C"] == "系统消息"

    def test_edge_label_is_player_input(self):
        graph = layout_dialogue_tree(make_scenario_tree())
        edges = {e.target: e for e in graph.edges}
        assert edges["B"].label == "go B"


class TestActions:
    def test_root_jump_disabled(self):
        graph = layout_dialogue_tree(make_scenario_tree())
        root = next(n for n in graph.nodes if n.id == "root")
        jump = next(a for a in root.actions if a.kind == "jump")
        assert not jump.enabled
        assert jump.reason == "cannot_jump_to_root"

    def test_callbacks_bound_to_node(self):
        jumped: list[str] = []
        graph = layout_dialogue_tree(make_scenario_tree(), on_jump=jumped.append)
        node = next(n for n in graph.nodes if n.id == "C")
        node.on_jump()
        assert jumped == ["C"]

    def test_callbacks_not_serialized(self):
        graph = layout_dialogue_tree(make_scenario_tree(), on_edit=lambda node_id: None)
        dumped = graph.model_dump()
        assert "on_edit" not in dumped["nodes"][0]
        assert "on_jump" not in dumped["nodes"][0]
