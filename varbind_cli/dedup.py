"""Result recording with optional collapse onto representative containers."""

from __future__ import annotations

from typing import List, Optional, Set

from .document import DocumentProvider
from .models import BoundPropertyRecord, Node, SearchMode

NEAREST = "nearest"
OUTERMOST = "outermost"
REPRESENTATIVE_POLICIES = (NEAREST, OUTERMOST)


def node_path(provider: DocumentProvider, node: Node, scope: Node) -> str:
    """Human-readable ``A > B > C`` path from below *scope* down to *node*."""
    parts: List[str] = []
    current: Optional[Node] = node
    while current is not None and current.index != scope.index:
        parts.append(current.name or current.node_type)
        current = provider.get_parent(current)
    if not parts:
        return node.name or node.node_type
    return " > ".join(reversed(parts))


def find_representative(
    provider: DocumentProvider,
    node: Node,
    scope: Node,
    policy: str = NEAREST,
) -> Optional[Node]:
    """Climb from *node* towards *scope* looking for a representative container.

    The climb never passes the scope container.  With the ``nearest``
    policy the first representative found (the node itself included)
    wins; with ``outermost`` the last one below the scope does.
    """
    found: Optional[Node] = None
    current: Optional[Node] = node
    while current is not None and current.index != scope.index:
        if current.is_representative:
            found = current
            if policy == NEAREST:
                break
        current = provider.get_parent(current)
    return found


class Deduplicator:
    """Turns matches into records according to the search mode.

    In representative-only mode the first match under a representative
    wins; later matches under the same representative are dropped and
    their property paths are not merged in.
    """

    def __init__(
        self,
        provider: DocumentProvider,
        mode: SearchMode,
        policy: str = NEAREST,
    ):
        if policy not in REPRESENTATIVE_POLICIES:
            raise ValueError(f"Unknown representative policy: {policy}")
        self.provider = provider
        self.mode = mode
        self.policy = policy
        self.records: List[BoundPropertyRecord] = []
        self.seen: Set[str] = set()

    def record(self, node: Node, matched_paths: List[str], scope: Node) -> Optional[BoundPropertyRecord]:
        """Record a match; return the new record, or None when it was suppressed."""
        target = node
        if self.mode is SearchMode.REPRESENTATIVE_ONLY:
            representative = find_representative(self.provider, node, scope, self.policy)
            if representative is None or representative.node_id in self.seen:
                return None
            self.seen.add(representative.node_id)
            target = representative

        record = BoundPropertyRecord(
            node=target,
            matched_property_paths=list(matched_paths),
            path_string=node_path(self.provider, target, scope),
            scope_name=scope.name or "Unknown Page",
        )
        self.records.append(record)
        return record
