"""Tests for property inspection, pruning and fault isolation in the walker."""

import pytest

from varbind_cli.dedup import Deduplicator
from varbind_cli.errors import DiagnosticKind
from varbind_cli.models import Outcome, SearchMode
from varbind_cli.progress import CancellationToken, ProgressReporter
from varbind_cli.resolver import ReferenceResolver
from varbind_cli.walker import SearchContext, TreeWalker, inspect_properties

from builders import (
    BRAND_ID,
    BRAND_KEY,
    OTHER_ID,
    REMOTE_BRAND_ID,
    alias,
    build,
    build_faulty,
    node,
    page,
    solid,
)


def _inspect(tree, node_id):
    target = tree.find_node(node_id)
    resolver = ReferenceResolver(tree, BRAND_ID, BRAND_KEY)
    return inspect_properties(target, tree.get_properties(target), resolver)


def _context(tree, brand, mode=SearchMode.DIRECT, total=100):
    return SearchContext(
        definition=brand,
        mode=mode,
        resolver=ReferenceResolver(tree, brand.id, brand.key),
        dedup=Deduplicator(tree, mode),
        reporter=ProgressReporter(total, CancellationToken()),
    )


class TestInspectProperties:
    """Tests for inspect_properties."""

    def test_fills_and_strokes(self):
        """Test solid fill and stroke colors."""
        tree = build([page("0:1", "P", [
            node("1:1", "Box", fills=[solid(OTHER_ID), solid(BRAND_ID)], strokes=[solid(BRAND_ID)]),
        ])])
        assert _inspect(tree, "1:1") == ["fills[1].color", "strokes[0].color"]

    def test_non_solid_paints_ignored(self):
        """Gradient paints are not inspected."""
        tree = build([page("0:1", "P", [
            node("1:1", "Box", fills=[solid(BRAND_ID, paint_type="GRADIENT_LINEAR")]),
        ])])
        assert _inspect(tree, "1:1") == []

    def test_dimension_and_layout_fields(self):
        """Test size, padding and spacing fields."""
        bound = {
            name: alias(BRAND_ID)
            for name in ("width", "height", "paddingLeft", "paddingRight", "paddingTop",
                         "paddingBottom", "itemSpacing", "counterAxisSpacing")
        }
        tree = build([page("0:1", "P", [node("1:1", "Stack", boundVariables=bound)])])
        assert _inspect(tree, "1:1") == [
            "width", "height", "paddingLeft", "paddingRight", "paddingTop",
            "paddingBottom", "itemSpacing", "counterAxisSpacing",
        ]

    def test_characters_only_on_text_nodes(self):
        """Characters are only inspected on text nodes."""
        tree = build([page("0:1", "P", [
            node("1:1", "Copy", "TEXT", boundVariables={"characters": alias(BRAND_ID)}),
            node("1:2", "Frame", "FRAME", boundVariables={"characters": alias(BRAND_ID)}),
        ])])
        assert _inspect(tree, "1:1") == ["characters"]
        assert _inspect(tree, "1:2") == []

    def test_effects(self):
        """Test shadow and blur effect fields."""
        shadow = {
            "type": "INNER_SHADOW",
            "boundVariables": {
                "color": alias(BRAND_ID),
                "offset": {"x": alias(BRAND_ID), "y": alias(OTHER_ID)},
                "radius": alias(BRAND_ID),
                "spread": alias(BRAND_ID),
            },
        }
        blur = {"type": "LAYER_BLUR", "boundVariables": {"radius": alias(BRAND_ID), "color": alias(BRAND_ID)}}
        tree = build([page("0:1", "P", [node("1:1", "Fx", effects=[shadow, blur])])])
        assert _inspect(tree, "1:1") == [
            "effects[0].color",
            "effects[0].offset.x",
            "effects[0].radius",
            "effects[0].spread",
            "effects[1].radius",
        ]

    def test_component_properties_only_on_instances(self):
        """Component properties are only inspected on instances."""
        props = {"Label#1:0": {"type": "TEXT", "boundVariables": {"value": alias(REMOTE_BRAND_ID)}},
                 "Icon#2:0": {"type": "BOOLEAN", "value": True}}
        tree = build([page("0:1", "P", [
            node("1:1", "Chip", "INSTANCE", componentProperties=props),
            node("1:2", "Chip master", "COMPONENT", componentProperties=props),
        ])])
        assert _inspect(tree, "1:1") == ["componentProperties.Label#1:0"]
        assert _inspect(tree, "1:2") == []


class TestTreeWalker:
    """Tests for TreeWalker traversal."""

    def test_count_direct_and_representative(self, sample_tree):
        """Test the pre-pass count in both modes."""
        walker = TreeWalker(sample_tree)
        components, screens = sample_tree.get_scope_containers()

        assert walker.count(components, SearchMode.DIRECT) == 6
        assert walker.count(screens, SearchMode.DIRECT) == 3
        assert walker.count(components, SearchMode.REPRESENTATIVE_ONLY) == 3
        assert walker.count(screens, SearchMode.REPRESENTATIVE_ONLY) == 1

    @pytest.mark.asyncio
    async def test_match_does_not_stop_descent(self, brand):
        """A matching node's children are still searched."""
        tree = build([page("0:1", "P", [
            node("1:1", "Outer", fills=[solid(BRAND_ID)], children=[
                node("1:2", "Inner", fills=[solid(BRAND_ID)]),
            ]),
        ])])
        ctx = _context(tree, brand)
        outcome = await TreeWalker(tree).visit(tree.find_node("1:1"), tree.find_node("0:1"), ctx)

        assert outcome is Outcome.MATCH
        assert [r.node.node_id for r in ctx.dedup.records] == ["1:1", "1:2"]

    @pytest.mark.asyncio
    async def test_locked_subtree_skipped(self, brand):
        """Test skipping a locked subtree."""
        tree = build([page("0:1", "P", [
            node("1:1", "Locked", locked=True, fills=[solid(BRAND_ID)], children=[
                node("1:2", "Child", fills=[solid(BRAND_ID)]),
            ]),
        ])])
        ctx = _context(tree, brand)
        outcome = await TreeWalker(tree).visit(tree.find_node("1:1"), tree.find_node("0:1"), ctx)

        assert outcome is Outcome.SKIPPED
        assert ctx.dedup.records == []
        assert ctx.reporter.visited == 1

    @pytest.mark.asyncio
    async def test_pruning_can_be_disabled(self, brand):
        """Hidden nodes are inspected when pruning is off."""
        tree = build([page("0:1", "P", [
            node("1:1", "Hidden", visible=False, fills=[solid(BRAND_ID)]),
        ])])
        ctx = _context(tree, brand)
        ctx.skip_hidden = False
        outcome = await TreeWalker(tree).visit(tree.find_node("1:1"), tree.find_node("0:1"), ctx)

        assert outcome is Outcome.MATCH

    @pytest.mark.asyncio
    async def test_property_failure_isolated(self, brand):
        """A failed property read still searches children and siblings."""
        tree = build_faulty([page("0:1", "P", [
            node("1:1", "Broken", fills=[solid(BRAND_ID)], children=[
                node("1:2", "Child", fills=[solid(BRAND_ID)]),
            ]),
            node("1:3", "Sibling", fills=[solid(BRAND_ID)]),
        ])])
        tree.broken_properties.add("1:1")
        ctx = _context(tree, brand)

        assert await TreeWalker(tree).walk_container(tree.find_node("0:1"), ctx) is True

        assert [r.node.node_id for r in ctx.dedup.records] == ["1:2", "1:3"]
        assert [(d.kind, d.node_id) for d in ctx.diagnostics] == [(DiagnosticKind.NODE_ACCESS, "1:1")]

    @pytest.mark.asyncio
    async def test_unreadable_children_skip_subtree(self, brand):
        """Unreadable children skip only that subtree."""
        tree = build_faulty([page("0:1", "P", [
            node("1:1", "Broken", fills=[solid(BRAND_ID)], children=[
                node("1:2", "Child", fills=[solid(BRAND_ID)]),
            ]),
            node("1:3", "Sibling", fills=[solid(BRAND_ID)]),
        ])])
        tree.broken_properties.add("1:1")
        tree.broken_children.add("1:1")
        ctx = _context(tree, brand)

        outcome = await TreeWalker(tree).visit(tree.find_node("1:1"), tree.find_node("0:1"), ctx)
        assert outcome is Outcome.FAILED

        await TreeWalker(tree).visit(tree.find_node("1:3"), tree.find_node("0:1"), ctx)
        assert [r.node.node_id for r in ctx.dedup.records] == ["1:3"]
        assert len(ctx.diagnostics) == 2

    @pytest.mark.asyncio
    async def test_cancelled_before_visit(self, brand):
        """Test visiting after cancellation."""
        tree = build([page("0:1", "P", [node("1:1", "Box", fills=[solid(BRAND_ID)])])])
        ctx = _context(tree, brand)
        ctx.reporter.token.cancel()

        outcome = await TreeWalker(tree).visit(tree.find_node("1:1"), tree.find_node("0:1"), ctx)

        assert outcome is Outcome.CANCELLED
        assert ctx.reporter.visited == 0
        assert ctx.reporter.cancelled is True

    @pytest.mark.asyncio
    async def test_seek_observes_cancellation(self, brand):
        """Pass-through nodes stop the walk once cancellation is requested."""
        tree = build([page("0:1", "P", [
            node("1:1", "Frame", children=[node("1:2", "Chip", "INSTANCE", fills=[solid(BRAND_ID)])]),
        ])])
        ctx = _context(tree, brand, SearchMode.REPRESENTATIVE_ONLY)
        ctx.reporter.token.cancel()

        outcome = await TreeWalker(tree).seek(tree.find_node("1:1"), tree.find_node("0:1"), ctx)

        assert outcome is Outcome.CANCELLED
        assert ctx.reporter.visited == 0
        assert ctx.dedup.records == []

    @pytest.mark.asyncio
    async def test_seek_prunes_hidden_pass_through(self, brand):
        """A hidden pass-through node hides the instances below it."""
        tree = build([page("0:1", "P", [
            node("1:1", "Frame", visible=False, children=[
                node("1:2", "Chip", "INSTANCE", fills=[solid(BRAND_ID)]),
            ]),
        ])])
        ctx = _context(tree, brand, SearchMode.REPRESENTATIVE_ONLY)

        outcome = await TreeWalker(tree).seek(tree.find_node("1:1"), tree.find_node("0:1"), ctx)

        assert outcome is Outcome.SKIPPED
        assert ctx.reporter.visited == 0
        assert ctx.dedup.records == []

    @pytest.mark.asyncio
    async def test_seek_visits_instances_without_counting_pass_through(self, brand):
        """Only nodes at or below an instance are counted as visited."""
        tree = build([page("0:1", "P", [
            node("1:1", "Frame", children=[
                node("1:2", "Chip", "INSTANCE", children=[node("1:3", "Fill", fills=[solid(BRAND_ID)])]),
            ]),
        ])])
        ctx = _context(tree, brand, SearchMode.REPRESENTATIVE_ONLY)

        outcome = await TreeWalker(tree).seek(tree.find_node("1:1"), tree.find_node("0:1"), ctx)

        assert outcome is Outcome.NO_MATCH
        assert ctx.reporter.visited == 2
        assert [r.node.node_id for r in ctx.dedup.records] == ["1:2"]
