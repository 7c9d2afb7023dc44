"""Search orchestrator: scope resolution, counting, scanning and aggregation."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from typing import AsyncIterator, Dict, Iterable, List, Optional, Union

from .config_manager import SearchConfig
from .dedup import Deduplicator
from .document import DocumentProvider, ReferenceStore
from .errors import DiagnosticKind
from .models import (
    BoundPropertyRecord,
    Diagnostic,
    MatchEvent,
    ProgressEvent,
    ReferenceDefinition,
    SearchMode,
    SearchResult,
    SearchState,
    UsageSummary,
)
from .progress import CancellationToken, MatchCallback, ProgressCallback, ProgressReporter, Scheduler
from .resolver import ReferenceResolver
from .walker import SearchContext, TreeWalker

logger = logging.getLogger(__name__)

StreamItem = Union[ProgressEvent, MatchEvent, SearchResult]


def base_property(path: str) -> str:
    """``fills[0].color`` -> ``fills``; ``componentProperties.Label`` -> ``componentProperties``."""
    return path.split("[")[0].split(".")[0]


def summarize(records: Iterable[BoundPropertyRecord]) -> UsageSummary:
    summary = UsageSummary()
    for record in records:
        summary.total_nodes += 1
        node_type = record.node.node_type
        summary.nodes_by_type[node_type] = summary.nodes_by_type.get(node_type, 0) + 1
        for path in record.matched_property_paths:
            base = base_property(path)
            summary.property_usage[base] = summary.property_usage.get(base, 0) + 1
    return summary


def group_by_scope(records: Iterable[BoundPropertyRecord]) -> Dict[str, List[BoundPropertyRecord]]:
    grouped: Dict[str, List[BoundPropertyRecord]] = OrderedDict()
    for record in records:
        grouped.setdefault(record.scope_name, []).append(record)
    return grouped


class SearchOrchestrator:
    """Finds every node bound to a definition.

    One orchestrator can run many searches, one at a time; every search
    builds its own :class:`~varbind_cli.walker.SearchContext`.
    """

    def __init__(
        self,
        provider: DocumentProvider,
        store: ReferenceStore,
        config: Optional[SearchConfig] = None,
        scheduler: Optional[Scheduler] = None,
    ):
        self.provider = provider
        self.store = store
        self.config = config or SearchConfig()
        self.scheduler = scheduler
        self.walker = TreeWalker(provider)
        self.state = SearchState.IDLE
        self.last_state = SearchState.IDLE
        self._token: Optional[CancellationToken] = None

    def cancel(self) -> None:
        """Request cancellation of the in-flight search, if any."""
        if self._token is not None:
            self._token.cancel()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        definition: Union[ReferenceDefinition, str],
        mode: Union[SearchMode, str] = SearchMode.DIRECT,
        scope_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_match: Optional[MatchCallback] = None,
    ) -> SearchResult:
        mode = SearchMode(mode)

        if isinstance(definition, str):
            resolved = self.store.get_definition(definition)
            if resolved is None:
                logger.warning("Definition %s not found", definition)
                return SearchResult(
                    definition_id=definition,
                    mode=mode,
                    diagnostics=[
                        Diagnostic(DiagnosticKind.DEFINITION_NOT_FOUND, f"No definition with id {definition}")
                    ],
                )
            definition = resolved

        result = SearchResult(definition_id=definition.id, definition_name=definition.name, mode=mode)

        if scope_id and not self.store.container_exists(scope_id):
            logger.warning("No container found with id %s", scope_id)
            result.diagnostics.append(
                Diagnostic(DiagnosticKind.SCOPE_NOT_FOUND, f"No container found with id {scope_id}")
            )
            return result

        token = CancellationToken()
        self._token = token
        try:
            return await self._run(definition, mode, scope_id, token, result, on_progress, on_match)
        finally:
            self._token = None
            self.last_state = self.state
            self.state = SearchState.IDLE

    async def _run(
        self,
        definition: ReferenceDefinition,
        mode: SearchMode,
        scope_id: Optional[str],
        token: CancellationToken,
        result: SearchResult,
        on_progress: Optional[ProgressCallback],
        on_match: Optional[MatchCallback],
    ) -> SearchResult:
        self.state = SearchState.COUNTING
        containers = self.provider.get_scope_containers(scope_id)
        logger.info(
            "Searching %d container(s)%s for '%s'",
            len(containers),
            f" (scope {scope_id})" if scope_id else "",
            definition.name or definition.id,
        )
        total = sum(self.walker.count(container, mode) for container in containers)

        reporter = ProgressReporter(
            total,
            token,
            on_progress=on_progress,
            on_match=on_match,
            scheduler=self.scheduler,
            interval=self.config.progress_interval,
        )
        resolver = ReferenceResolver(self.store, definition.id, definition.key)
        ctx = SearchContext(
            definition=definition,
            mode=mode,
            resolver=resolver,
            dedup=Deduplicator(self.provider, mode, self.config.representative),
            reporter=reporter,
            skip_hidden=self.config.skip_hidden,
            skip_locked=self.config.skip_locked,
        )

        self.state = SearchState.SCANNING
        started = time.perf_counter()
        reporter.start()
        for container in containers:
            if not await self.walker.walk_container(container, ctx):
                break
        reporter.finish()
        elapsed_ms = (time.perf_counter() - started) * 1000

        result.records = list(ctx.dedup.records)
        result.summary = summarize(result.records)
        result.cancelled = reporter.cancelled
        result.diagnostics.extend(ctx.diagnostics)
        result.diagnostics.extend(resolver.diagnostics)
        result.visited = reporter.visited
        result.total = total

        if result.cancelled:
            self.state = SearchState.CANCELLED
            logger.info(
                "Search cancelled after %.0fms. Found %d nodes so far.", elapsed_ms, len(result.records)
            )
        else:
            self.state = SearchState.COMPLETED
            logger.info("Search completed in %.0fms. Found %d nodes.", elapsed_ms, len(result.records))
        stats = resolver.stats()
        logger.debug(
            "Cached %d keys (%d unresolved), %d equivalent ids, %d representatives",
            stats["cached_keys"], stats["unresolved"], stats["equivalent_ids"], len(ctx.dedup.seen),
        )
        return result

    async def search_many(
        self,
        definition_ids: Iterable[str],
        mode: Union[SearchMode, str] = SearchMode.DIRECT,
        scope_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_match: Optional[MatchCallback] = None,
    ) -> List[SearchResult]:
        """Search several definitions one after another, stopping early on cancel."""
        results: List[SearchResult] = []
        for definition_id in definition_ids:
            result = await self.search(definition_id, mode, scope_id, on_progress, on_match)
            results.append(result)
            if result.cancelled:
                break
        return results

    async def stream(
        self,
        definition: Union[ReferenceDefinition, str],
        mode: Union[SearchMode, str] = SearchMode.DIRECT,
        scope_id: Optional[str] = None,
    ) -> AsyncIterator[StreamItem]:
        """Yield progress and match events as they happen, then the final result."""
        queue: "asyncio.Queue[StreamItem]" = asyncio.Queue()
        task = asyncio.ensure_future(
            self.search(definition, mode, scope_id, on_progress=queue.put_nowait, on_match=queue.put_nowait)
        )
        try:
            while True:
                if not queue.empty():
                    yield queue.get_nowait()
                    continue
                if task.done():
                    break
                getter = asyncio.ensure_future(queue.get())
                await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
                if getter.done():
                    yield getter.result()
                else:
                    getter.cancel()
            yield task.result()
        finally:
            if not task.done():
                self.cancel()
                await task
