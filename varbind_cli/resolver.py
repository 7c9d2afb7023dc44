"""Alias equivalence with per-search memoisation."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from .document import ReferenceStore
from .errors import DiagnosticKind
from .models import Alias, Diagnostic

logger = logging.getLogger(__name__)

# Cached in place of a key when resolution fails, so the lookup is not retried.
UNRESOLVED = object()


class ReferenceResolver:
    """Decides whether an alias refers to the queried definition.

    An alias is equivalent when its id is the target id, or when the key
    it resolves to equals the target key.  Each distinct alias id is
    resolved at most once per resolver; one resolver serves one search.
    """

    def __init__(self, store: ReferenceStore, target_id: str, target_key: str):
        self.store = store
        self.target_id = target_id
        self.target_key = target_key
        self.confirmed_ids: Set[str] = {target_id}
        self.key_cache: Dict[str, object] = {target_id: target_key}
        self.diagnostics: List[Diagnostic] = []

    def is_equivalent(self, alias: Optional[Alias]) -> bool:
        if alias is None:
            return False
        if alias.id in self.confirmed_ids:
            return True

        cached = self.key_cache.get(alias.id)
        if cached is None:
            cached = self._resolve(alias.id)
            self.key_cache[alias.id] = cached
            if cached is not UNRESOLVED and cached == self.target_key:
                self.confirmed_ids.add(alias.id)

        return cached is not UNRESOLVED and cached == self.target_key

    def _resolve(self, alias_id: str) -> object:
        try:
            key = self.store.resolve_alias_key(alias_id)
        except Exception as exc:
            logger.debug("Alias %s could not be resolved: %s", alias_id, exc)
            self.diagnostics.append(
                Diagnostic(DiagnosticKind.RESOLUTION, f"Alias {alias_id} could not be resolved: {exc}")
            )
            return UNRESOLVED
        if not key:
            return UNRESOLVED
        return key

    def stats(self) -> Dict[str, int]:
        return {
            "cached_keys": len(self.key_cache),
            "unresolved": sum(1 for v in self.key_cache.values() if v is UNRESOLVED),
            "equivalent_ids": len(self.confirmed_ids),
        }
