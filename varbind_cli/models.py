"""Core data models shared by the document host, the search engine and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Parent index of nodes that have no parent in the arena.
NO_PARENT = -1

# Node type tags.
DOCUMENT = "DOCUMENT"
PAGE = "PAGE"
INSTANCE = "INSTANCE"
TEXT = "TEXT"

REPRESENTATIVE_TYPES = frozenset({INSTANCE})


class SearchMode(str, Enum):
    DIRECT = "direct"
    REPRESENTATIVE_ONLY = "representative-only"


class Outcome(str, Enum):
    """Result of visiting a single node."""

    MATCH = "match"
    NO_MATCH = "no-match"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


class SearchState(str, Enum):
    IDLE = "idle"
    COUNTING = "counting"
    SCANNING = "scanning"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Alias:
    """A property's reference to a definition by local id."""

    id: str


@dataclass(frozen=True)
class ReferenceDefinition:
    id: str
    key: str
    name: str = ""
    resolved_type: str = ""


@dataclass
class Paint:
    type: str
    color: Optional[Alias] = None


@dataclass
class Effect:
    type: str
    color: Optional[Alias] = None
    offset_x: Optional[Alias] = None
    offset_y: Optional[Alias] = None
    radius: Optional[Alias] = None
    spread: Optional[Alias] = None


@dataclass
class NodeProperties:
    """The bindable property slots of a node."""

    fills: List[Paint] = field(default_factory=list)
    strokes: List[Paint] = field(default_factory=list)
    bound_variables: Dict[str, Alias] = field(default_factory=dict)
    effects: List[Effect] = field(default_factory=list)
    component_properties: Dict[str, Optional[Alias]] = field(default_factory=dict)


@dataclass
class Node:
    """A node in the document arena.

    ``parent_index`` and ``child_indices`` point into the owning
    :class:`~varbind_cli.document.DocumentTree`'s ``nodes`` list.
    """

    index: int
    node_id: str
    name: str
    node_type: str
    visible: bool = True
    locked: bool = False
    parent_index: int = NO_PARENT
    child_indices: List[int] = field(default_factory=list)
    properties: NodeProperties = field(default_factory=NodeProperties)

    @property
    def is_representative(self) -> bool:
        return self.node_type in REPRESENTATIVE_TYPES


@dataclass
class BoundPropertyRecord:
    node: Node
    matched_property_paths: List[str]
    path_string: str
    scope_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodeId": self.node.node_id,
            "nodeName": self.node.name,
            "nodeType": self.node.node_type,
            "matchedPropertyPaths": list(self.matched_property_paths),
            "pathString": self.path_string,
            "scopeName": self.scope_name,
        }


@dataclass
class UsageSummary:
    total_nodes: int = 0
    nodes_by_type: Dict[str, int] = field(default_factory=dict)
    property_usage: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalNodes": self.total_nodes,
            "nodesByType": dict(self.nodes_by_type),
            "propertyUsage": dict(self.property_usage),
        }


@dataclass(frozen=True)
class ProgressEvent:
    visited: int
    total: int
    percentage: int
    matches_so_far: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "visited": self.visited,
            "total": self.total,
            "percentage": self.percentage,
            "matchesSoFar": self.matches_so_far,
        }


@dataclass(frozen=True)
class MatchEvent:
    definition_id: str
    definition_name: str
    node_id: str
    node_name: str
    node_type: str
    scope_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "definitionId": self.definition_id,
            "definitionName": self.definition_name,
            "node": {
                "id": self.node_id,
                "name": self.node_name,
                "type": self.node_type,
                "scopeName": self.scope_name,
            },
        }


@dataclass(frozen=True)
class Diagnostic:
    kind: str
    message: str
    node_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "nodeId": self.node_id}


@dataclass
class SearchResult:
    definition_id: str
    definition_name: str = ""
    mode: SearchMode = SearchMode.DIRECT
    records: List[BoundPropertyRecord] = field(default_factory=list)
    summary: UsageSummary = field(default_factory=UsageSummary)
    cancelled: bool = False
    diagnostics: List[Diagnostic] = field(default_factory=list)
    visited: int = 0
    total: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "definitionId": self.definition_id,
            "definitionName": self.definition_name,
            "mode": self.mode.value,
            "records": [r.to_dict() for r in self.records],
            "summary": self.summary.to_dict(),
            "cancelled": self.cancelled,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "visited": self.visited,
            "total": self.total,
        }
