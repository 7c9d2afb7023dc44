"""Document host: collaborator interfaces and an in-memory arena implementation.

The search engine only talks to a document through :class:`DocumentProvider`
and :class:`ReferenceStore`.  :class:`DocumentTree` implements both over a
JSON export of a design document, storing nodes in a flat arena where
parents and children are referenced by index.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import DocumentLoadError
from .models import (
    NO_PARENT,
    PAGE,
    Alias,
    Effect,
    Node,
    NodeProperties,
    Paint,
    ReferenceDefinition,
)

logger = logging.getLogger(__name__)


# ===================================================================
# Collaborator interfaces
# ===================================================================

class DocumentProvider(ABC):
    """Read-only access to the shape and contents of a document tree."""

    @abstractmethod
    def get_scope_containers(self, scope_id: Optional[str] = None) -> List[Node]:
        """Return the ordered top-level containers, optionally filtered to *scope_id*."""
        ...

    @abstractmethod
    def get_children(self, node: Node) -> List[Node]:
        ...

    @abstractmethod
    def get_parent(self, node: Node) -> Optional[Node]:
        ...

    @abstractmethod
    def get_properties(self, node: Node) -> NodeProperties:
        ...


class ReferenceStore(ABC):
    """Lookup of definitions and alias keys."""

    @abstractmethod
    def resolve_alias_key(self, alias_id: str) -> Optional[str]:
        """Return the stable key for *alias_id*, or ``None`` when it cannot be resolved."""
        ...

    @abstractmethod
    def container_exists(self, scope_id: str) -> bool:
        ...

    @abstractmethod
    def get_definition(self, definition_id: str) -> Optional[ReferenceDefinition]:
        ...


# ===================================================================
# Arena implementation
# ===================================================================

class DocumentTree(DocumentProvider, ReferenceStore):
    """Arena-backed document built from a JSON export."""

    def __init__(self, name: str = "Untitled") -> None:
        self.name = name
        self.nodes: List[Node] = []
        self.container_indices: List[int] = []
        self.definitions: Dict[str, ReferenceDefinition] = {}
        self.alias_keys: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DocumentTree":
        if not isinstance(payload, dict):
            raise DocumentLoadError("Document export must be a JSON object")

        tree = cls(name=str(payload.get("name", "Untitled")))

        for raw in payload.get("definitions", []):
            try:
                definition = ReferenceDefinition(
                    id=str(raw["id"]),
                    key=str(raw["key"]),
                    name=str(raw.get("name", "")),
                    resolved_type=str(raw.get("resolvedType", "")),
                )
            except (KeyError, TypeError) as exc:
                raise DocumentLoadError(f"Invalid definition entry: {raw!r}") from exc
            tree.definitions[definition.id] = definition

        alias_keys = payload.get("aliasKeys", {})
        if not isinstance(alias_keys, dict):
            raise DocumentLoadError("'aliasKeys' must be an object")
        tree.alias_keys = {str(k): str(v) for k, v in alias_keys.items()}

        containers = payload.get("containers", [])
        if not isinstance(containers, list):
            raise DocumentLoadError("'containers' must be a list")
        for raw in containers:
            raw = dict(raw)
            raw.setdefault("type", PAGE)
            index = tree._add_node(raw, NO_PARENT)
            tree.container_indices.append(index)

        logger.debug(
            "Loaded document '%s': %d nodes, %d containers, %d definitions",
            tree.name, len(tree.nodes), len(tree.container_indices), len(tree.definitions),
        )
        return tree

    def _add_node(self, raw: Dict[str, Any], parent_index: int) -> int:
        # Iterative so deep documents do not hit the recursion limit while loading.
        root_index = -1
        stack = [(raw, parent_index)]
        while stack:
            current, parent = stack.pop()
            node = self._make_node(current, parent)
            self.nodes.append(node)
            if parent != NO_PARENT:
                self.nodes[parent].child_indices.append(node.index)
            else:
                root_index = node.index
            children = current.get("children", [])
            if not isinstance(children, list):
                raise DocumentLoadError(f"'children' of node {node.node_id} must be a list")
            for child in reversed(children):
                stack.append((child, node.index))
        return root_index

    def _make_node(self, raw: Any, parent_index: int) -> Node:
        if not isinstance(raw, dict) or "id" not in raw:
            raise DocumentLoadError(f"Invalid node entry: {raw!r}")
        return Node(
            index=len(self.nodes),
            node_id=str(raw["id"]),
            name=str(raw.get("name", "")),
            node_type=str(raw.get("type", "FRAME")),
            visible=bool(raw.get("visible", True)),
            locked=bool(raw.get("locked", False)),
            parent_index=parent_index,
            properties=_parse_properties(raw),
        )

    # ------------------------------------------------------------------
    # DocumentProvider
    # ------------------------------------------------------------------

    def get_scope_containers(self, scope_id: Optional[str] = None) -> List[Node]:
        containers = [self.nodes[i] for i in self.container_indices]
        if scope_id:
            return [c for c in containers if c.node_id == scope_id]
        return containers

    def get_children(self, node: Node) -> List[Node]:
        return [self.nodes[i] for i in node.child_indices]

    def get_parent(self, node: Node) -> Optional[Node]:
        if node.parent_index == NO_PARENT:
            return None
        return self.nodes[node.parent_index]

    def get_properties(self, node: Node) -> NodeProperties:
        return node.properties

    # ------------------------------------------------------------------
    # ReferenceStore
    # ------------------------------------------------------------------

    def resolve_alias_key(self, alias_id: str) -> Optional[str]:
        definition = self.definitions.get(alias_id)
        if definition is not None:
            return definition.key
        return self.alias_keys.get(alias_id)

    def container_exists(self, scope_id: str) -> bool:
        return any(self.nodes[i].node_id == scope_id for i in self.container_indices)

    def get_definition(self, definition_id: str) -> Optional[ReferenceDefinition]:
        return self.definitions.get(definition_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def find_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.node_id == node_id:
                return node
        return None


def load_document(path: Path) -> DocumentTree:
    """Load a :class:`DocumentTree` from a JSON export on disk."""
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise DocumentLoadError(f"Document not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise DocumentLoadError(f"Document is not valid JSON: {exc}") from exc
    return DocumentTree.from_dict(payload)


# ---------------------------------------------------------------------------
# Property slot parsing
# ---------------------------------------------------------------------------

def _alias(raw: Any) -> Optional[Alias]:
    if isinstance(raw, dict) and raw.get("id"):
        return Alias(id=str(raw["id"]))
    return None


def _paints(raw_list: Any) -> List[Paint]:
    paints: List[Paint] = []
    for raw in raw_list or []:
        bound = raw.get("boundVariables") or {}
        paints.append(Paint(type=str(raw.get("type", "")), color=_alias(bound.get("color"))))
    return paints


def _effects(raw_list: Any) -> List[Effect]:
    effects: List[Effect] = []
    for raw in raw_list or []:
        bound = raw.get("boundVariables") or {}
        offset = bound.get("offset") or {}
        effects.append(
            Effect(
                type=str(raw.get("type", "")),
                color=_alias(bound.get("color")),
                offset_x=_alias(offset.get("x")),
                offset_y=_alias(offset.get("y")),
                radius=_alias(bound.get("radius")),
                spread=_alias(bound.get("spread")),
            )
        )
    return effects


def _parse_properties(raw: Dict[str, Any]) -> NodeProperties:
    try:
        bound_variables: Dict[str, Alias] = {}
        for field_name, value in (raw.get("boundVariables") or {}).items():
            alias = _alias(value)
            if alias is not None:
                bound_variables[field_name] = alias

        component_properties: Dict[str, Optional[Alias]] = {}
        for prop_name, value in (raw.get("componentProperties") or {}).items():
            bound = value.get("boundVariables") if isinstance(value, dict) else None
            component_properties[prop_name] = _alias((bound or {}).get("value"))

        return NodeProperties(
            fills=_paints(raw.get("fills")),
            strokes=_paints(raw.get("strokes")),
            bound_variables=bound_variables,
            effects=_effects(raw.get("effects")),
            component_properties=component_properties,
        )
    except (AttributeError, TypeError) as exc:
        raise DocumentLoadError(f"Invalid property slots on node {raw.get('id')!r}") from exc
