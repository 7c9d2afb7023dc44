"""Depth-first document traversal and per-node binding inspection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .dedup import Deduplicator
from .document import DocumentProvider
from .errors import DiagnosticKind
from .models import (
    INSTANCE,
    TEXT,
    Diagnostic,
    MatchEvent,
    Node,
    NodeProperties,
    Outcome,
    ReferenceDefinition,
    SearchMode,
)
from .progress import ProgressReporter
from .resolver import ReferenceResolver

logger = logging.getLogger(__name__)

# Node-level bindable fields, in reporting order.
DIMENSION_FIELDS = ("width", "height")
LAYOUT_FIELDS = (
    "paddingLeft",
    "paddingRight",
    "paddingTop",
    "paddingBottom",
    "itemSpacing",
    "counterAxisSpacing",
)
TEXT_FIELDS = ("characters",)

SHADOW_EFFECTS = {"DROP_SHADOW", "INNER_SHADOW"}
BLUR_EFFECTS = {"LAYER_BLUR", "BACKGROUND_BLUR"}


@dataclass
class SearchContext:
    """Everything one search invocation owns.  Never shared between searches."""

    definition: ReferenceDefinition
    mode: SearchMode
    resolver: ReferenceResolver
    dedup: Deduplicator
    reporter: ProgressReporter
    skip_hidden: bool = True
    skip_locked: bool = True
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def should_prune(self, node: Node) -> bool:
        return (self.skip_hidden and not node.visible) or (self.skip_locked and node.locked)


def inspect_properties(node: Node, props: NodeProperties, resolver: ReferenceResolver) -> List[str]:
    """Return the property paths of *node* bound to the resolver's target."""
    matched: List[str] = []

    for index, paint in enumerate(props.fills):
        if paint.type == "SOLID" and resolver.is_equivalent(paint.color):
            matched.append(f"fills[{index}].color")

    for index, paint in enumerate(props.strokes):
        if paint.type == "SOLID" and resolver.is_equivalent(paint.color):
            matched.append(f"strokes[{index}].color")

    fields = DIMENSION_FIELDS + LAYOUT_FIELDS
    if node.node_type == TEXT:
        fields = fields + TEXT_FIELDS
    for name in fields:
        if resolver.is_equivalent(props.bound_variables.get(name)):
            matched.append(name)

    for index, effect in enumerate(props.effects):
        prefix = f"effects[{index}]"
        if effect.type in SHADOW_EFFECTS:
            if resolver.is_equivalent(effect.color):
                matched.append(f"{prefix}.color")
            if resolver.is_equivalent(effect.offset_x):
                matched.append(f"{prefix}.offset.x")
            if resolver.is_equivalent(effect.offset_y):
                matched.append(f"{prefix}.offset.y")
            if resolver.is_equivalent(effect.radius):
                matched.append(f"{prefix}.radius")
            if resolver.is_equivalent(effect.spread):
                matched.append(f"{prefix}.spread")
        elif effect.type in BLUR_EFFECTS:
            if resolver.is_equivalent(effect.radius):
                matched.append(f"{prefix}.radius")

    if node.node_type == INSTANCE:
        for name, alias in props.component_properties.items():
            if resolver.is_equivalent(alias):
                matched.append(f"componentProperties.{name}")

    return matched


class TreeWalker:
    """Pre-order traversal in document sibling order.

    Hidden and locked nodes are not inspected and their subtrees are
    skipped.  This is a scope reduction for speed: bindings inside them
    are never reported.
    """

    def __init__(self, provider: DocumentProvider):
        self.provider = provider

    # ------------------------------------------------------------------
    # Pre-pass
    # ------------------------------------------------------------------

    def count(self, container: Node, mode: SearchMode) -> int:
        """Number of nodes below *container* that a search in *mode* will visit at most."""
        total = 0
        stack = self._children_or_empty(container)[::-1]
        while stack:
            node = stack.pop()
            if mode is SearchMode.REPRESENTATIVE_ONLY and node.is_representative:
                total += self._subtree_size(node)
                continue
            if mode is SearchMode.DIRECT:
                total += 1
            stack.extend(reversed(self._children_or_empty(node)))
        return total

    def _subtree_size(self, node: Node) -> int:
        size = 0
        stack = [node]
        while stack:
            current = stack.pop()
            size += 1
            stack.extend(self._children_or_empty(current))
        return size

    def _children_or_empty(self, node: Node) -> List[Node]:
        try:
            return list(self.provider.get_children(node))
        except Exception as exc:
            logger.debug("Children of %s unreadable during count: %s", node.node_id, exc)
            return []

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    async def walk_container(self, container: Node, ctx: SearchContext) -> bool:
        """Walk every top-level child of *container*.  Returns False if cancelled."""
        children = self._read_children(container, ctx)
        if children is None:
            return True

        for child in children:
            if ctx.mode is SearchMode.REPRESENTATIVE_ONLY:
                outcome = await self.seek(child, container, ctx)
            else:
                outcome = await self.visit(child, container, ctx)
            if outcome is Outcome.CANCELLED:
                return False
        return True

    async def seek(self, node: Node, scope: Node, ctx: SearchContext) -> Outcome:
        """Pass through nodes outside representative containers until one is found.

        Pass-through nodes are neither counted nor inspected, but pruning
        and cancellation still apply to them.
        """
        return await self._walk(node, scope, ctx, passing=True)

    async def visit(self, node: Node, scope: Node, ctx: SearchContext) -> Outcome:
        """Visit *node* and its subtree.  Returns the outcome of *node* itself."""
        return await self._walk(node, scope, ctx, passing=False)

    async def _walk(self, node: Node, scope: Node, ctx: SearchContext, passing: bool) -> Outcome:
        # Explicit stack so document depth is not bounded by the recursion limit.
        stack = [(node, passing)]
        first: Optional[Outcome] = None
        while stack:
            current, current_passing = stack.pop()
            if current_passing and current.is_representative:
                current_passing = False

            if current_passing:
                if ctx.reporter.check_cancelled():
                    return Outcome.CANCELLED
            elif not await ctx.reporter.before_visit():
                return Outcome.CANCELLED

            if ctx.should_prune(current):
                outcome = Outcome.SKIPPED
            else:
                outcome = Outcome.NO_MATCH if current_passing else self._inspect(current, scope, ctx)
                children = self._read_children(current, ctx)
                for child in reversed(children or []):
                    stack.append((child, current_passing))

            if first is None:
                first = outcome
        return first

    def _inspect(self, node: Node, scope: Node, ctx: SearchContext) -> Outcome:
        try:
            props = self.provider.get_properties(node)
            matched = inspect_properties(node, props, ctx.resolver)
        except Exception as exc:
            logger.warning("Skipping node %s (%s) due to error: %s", node.node_id, node.name, exc)
            ctx.diagnostics.append(
                Diagnostic(DiagnosticKind.NODE_ACCESS, f"Property access failed: {exc}", node.node_id)
            )
            return Outcome.FAILED

        if not matched:
            return Outcome.NO_MATCH

        try:
            record = ctx.dedup.record(node, matched, scope)
        except Exception as exc:
            logger.warning("Dropping match on %s (%s): ancestors unreadable: %s", node.node_id, node.name, exc)
            ctx.diagnostics.append(
                Diagnostic(DiagnosticKind.NODE_ACCESS, f"Ancestor access failed: {exc}", node.node_id)
            )
            return Outcome.FAILED

        if record is not None:
            ctx.reporter.match(
                MatchEvent(
                    definition_id=ctx.definition.id,
                    definition_name=ctx.definition.name,
                    node_id=record.node.node_id,
                    node_name=record.node.name,
                    node_type=record.node.node_type,
                    scope_name=record.scope_name,
                )
            )
        return Outcome.MATCH

    def _read_children(self, node: Node, ctx: SearchContext) -> Optional[List[Node]]:
        try:
            return list(self.provider.get_children(node))
        except Exception as exc:
            logger.warning("Skipping subtree of %s: children unreadable: %s", node.node_id, exc)
            ctx.diagnostics.append(
                Diagnostic(DiagnosticKind.NODE_ACCESS, f"Children unreadable: {exc}", node.node_id)
            )
            return None
