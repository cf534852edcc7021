"""
Sync Pipeline
=============

Runs the sync jobs end to end:

    fetch (per source, concurrently) -> normalize -> reconcile -> execution log

Each source is fault-contained: its failure lands in that source's result
and the other sources carry on. Each record is fault-contained too: a
validation or persistence error is noted and the loop moves to the next
record. Every invocation writes exactly one execution row, cancelled runs
included.
"""

import asyncio
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from ..context import AppContext
from ..database.models import (
    Actor,
    AuditAction,
    AuditLogEntry,
    ContentItem,
    ContentType,
    SourceResult,
    SyncResult,
)
from ..ingestion.rss_adapter import RSSAdapter
from ..ingestion.seed_data import demo_releases
from ..monitoring.execution_logger import ExecutionLogger
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import (
    ConfigurationError,
    ContentSyncError,
    FailureKind,
    PersistenceError,
    classify_error,
)
from . import normalizer

JOB_PLATFORM_NEWS = "sync-platform-news"
JOB_RELEASES = "sync-releases"
JOB_CLIPS = "sync-clips"

# Whether a failed release source hands over to the next one in the chain.
RELEASE_FALLBACK_ON: Dict[FailureKind, bool] = {
    FailureKind.NOT_CONFIGURED: True,
    FailureKind.UNAUTHORIZED: True,
    FailureKind.UPSTREAM: True,
    FailureKind.UNKNOWN: True,
    # the store is shared by every source, so the next one would fail too
    FailureKind.PERSISTENCE: False,
}


class SyncPipeline:
    """Entry point for every sync job."""

    def __init__(self, context: AppContext):
        self.context = context
        self.settings = context.settings
        self.logger = get_logger_for_component("processing.pipeline")

    @property
    def jobs(self) -> Dict[str, Callable[[ExecutionLogger], Awaitable[SyncResult]]]:
        return {
            JOB_PLATFORM_NEWS: self._platform_news,
            JOB_RELEASES: self._releases,
            JOB_CLIPS: self._clips,
        }

    async def run(self, job_name: str, actor: Optional[Actor] = None) -> SyncResult:
        """Run one job and record its execution.

        Args:
            job_name: One of the JOB_* names
            actor: Admin who triggered the run; adds a ``sync`` audit entry

        Raises:
            KeyError: Unknown job name
            ConfigurationError: The job has no configured source at all
            asyncio.CancelledError: The run was cancelled, after a timeout row was written
            Exception: Unexpected errors, after the failure has been logged
        """
        job = self.jobs[job_name]
        execution = ExecutionLogger(self.context.executions, job_name)
        execution.set_metadata(triggered_by=actor.user_id if actor else "cron")
        logger = self.logger.bind(job_name=job_name, execution_id=execution.execution_id)

        try:
            with PerformanceLogger(logger, job_name):
                result = await job(execution)
        except asyncio.CancelledError:
            # caller timed out or the server is shutting down
            logger.warning(f"{job_name} cancelled")
            execution.log_timeout()
            self._audit_sync(actor, job_name, execution.execution_id, None)
            raise
        except Exception as e:
            execution.log_failure(e)
            self._audit_sync(actor, job_name, execution.execution_id, None)
            raise

        result.execution_id = execution.execution_id
        execution.set_records_processed(result.records_processed)
        execution.set_metadata(
            fetched=result.fetched,
            inserted=result.inserted,
            updated=result.updated,
            skipped=result.skipped,
            errors=result.errors[:20],
            sources=[s.source for s in result.sources],
        )
        if result.success:
            execution.log_success()
        else:
            execution.log_failure(_JobFailed(result.error or "; ".join(result.errors) or "sync failed"))

        self._audit_sync(actor, job_name, execution.execution_id, result)
        logger.info(
            f"{job_name}: fetched={result.fetched} inserted={result.inserted} "
            f"updated={result.updated} skipped={result.skipped} errors={len(result.errors)}"
        )
        return result

    async def sync_platform_news(self, actor: Optional[Actor] = None) -> SyncResult:
        return await self.run(JOB_PLATFORM_NEWS, actor)

    async def sync_releases(self, actor: Optional[Actor] = None) -> SyncResult:
        return await self.run(JOB_RELEASES, actor)

    async def sync_clips(self, actor: Optional[Actor] = None) -> SyncResult:
        return await self.run(JOB_CLIPS, actor)

    def _audit_sync(self, actor: Optional[Actor], job_name: str, execution_id: str,
                    result: Optional[SyncResult]) -> None:
        if actor is None:
            return
        metadata: Dict[str, Any] = {"execution_id": execution_id}
        if result is not None:
            metadata.update(
                success=result.success, inserted=result.inserted,
                updated=result.updated, skipped=result.skipped,
            )
        else:
            metadata["success"] = False
        try:
            self.context.audit.append(
                AuditLogEntry.for_actor(actor, AuditAction.SYNC, job_name, execution_id, metadata)
            )
        except PersistenceError as e:
            self.logger.error(f"Failed to audit {job_name} run: {e}")

    # -- shared steps -----------------------------------------------------

    def _store_all(self, source_result: SourceResult,
                   builders: Iterable[Callable[[], Optional[ContentItem]]]) -> None:
        """Normalize and reconcile one record per builder.

        A builder returning None counts as skipped. A record that fails
        validation or storage is logged into the source's errors and the
        rest of the batch carries on.
        """
        source = source_result.source
        for build in builders:
            try:
                item = build()
            except (ValidationError, ValueError, KeyError, TypeError) as e:
                self.logger.warning(f"{source}: dropped record ({type(e).__name__}): {e}")
                source_result.errors.append(f"{source}: invalid record: {_first_line(e)}")
                continue
            if item is None:
                source_result.skipped += 1
                continue
            try:
                outcome = self.context.content.reconcile(item)
            except PersistenceError as e:
                self.logger.warning(f"{source}: {e}")
                source_result.errors.append(f"{source}: {e.message}")
                continue
            except ValueError as e:
                self.logger.warning(f"{source}: unkeyed record {item.title!r}: {e}")
                source_result.errors.append(f"{source}: {e}")
                continue
            source_result.record(outcome)

    async def _gather_sources(
        self, tasks: List[Tuple[str, Callable[[], Awaitable[SourceResult]]]]
    ) -> List[SourceResult]:
        """Run source tasks concurrently; a failing source becomes a failed SourceResult."""
        semaphore = asyncio.Semaphore(self.settings.processing.parallel_sources)

        async def guarded(name: str, task: Callable[[], Awaitable[SourceResult]]) -> SourceResult:
            async with semaphore:
                try:
                    return await task()
                except Exception as e:
                    kind = classify_error(e)
                    message = e.message if isinstance(e, ContentSyncError) else str(e)
                    self.logger.warning(f"Source {name} failed ({kind.value}): {message}")
                    return SourceResult(source=name, errors=[f"{name}: {message}"],
                                        failure_kind=kind.value)

        return list(await asyncio.gather(*(guarded(name, task) for name, task in tasks)))

    # -- platform news ----------------------------------------------------

    async def _platform_news(self, execution: ExecutionLogger) -> SyncResult:
        feeds = self.settings.feed_sources()
        if not feeds:
            raise ConfigurationError("No platform news feeds are configured", config_key="feeds")

        auto_publish = self.settings.auto_publish.for_type(ContentType.NEWS)
        result = SyncResult()

        async with self.context.session_factory() as session:

            def feed_task(source: str, url: str):
                async def task() -> SourceResult:
                    adapter = RSSAdapter(session, source, url)
                    source_result = SourceResult(source=source)
                    entries = await adapter.fetch()
                    builders = []
                    for raw in entries:
                        source_result.fetched += 1
                        builders.append(partial(normalizer.normalize_feed_entry, raw, source, auto_publish))
                    self._store_all(source_result, builders)
                    return source_result
                return task

            source_results = await self._gather_sources(
                [(source, feed_task(source, url)) for source, url in feeds]
            )

        for source_result in source_results:
            result.add_source(source_result)

        if source_results and all(s.failed for s in source_results):
            result.success = False
            result.error = "All platform news feeds failed"
        return result

    # -- releases with fallback chain ---------------------------------------

    async def _releases(self, execution: ExecutionLogger) -> SyncResult:
        auto_publish = self.settings.auto_publish.for_type(ContentType.RELEASE)
        limits = self.settings.limits
        result = SyncResult()

        async with self.context.session_factory() as session:
            catalog = self.context.catalog_adapter(session)
            secondary = self.context.secondary_catalog_adapter(session)

            async def from_catalog() -> SourceResult:
                source_result = SourceResult(source=catalog.source)
                records = await catalog.fetch_upcoming_releases(limits.release_limit, limits.release_days_ahead)
                source_result.fetched = len(records)
                self._store_all(
                    source_result,
                    (partial(normalizer.normalize_catalog_release, r, auto_publish, catalog.image_url)
                     for r in records),
                )
                return source_result

            async def from_secondary() -> SourceResult:
                source_result = SourceResult(source=secondary.source)
                games = await secondary.fetch_upcoming_releases(limits.release_days_ahead)
                source_result.fetched = len(games)
                self._store_all(
                    source_result,
                    (partial(normalizer.normalize_secondary_release, g, auto_publish,
                             self.settings.catalog.default_image_url)
                     for g in games),
                )
                return source_result

            async def from_seed() -> SourceResult:
                source_result = SourceResult(source="seed")
                demos = demo_releases()
                source_result.fetched = len(demos)
                self._store_all(source_result,
                                (partial(normalizer.normalize_seed_release, d, auto_publish) for d in demos))
                return source_result

            chain = [(catalog.source, from_catalog), (secondary.source, from_secondary)]
            if self.settings.use_seed_fallback:
                chain.append(("seed", from_seed))

            for name, attempt in chain:
                try:
                    source_result = await attempt()
                except Exception as e:
                    kind = classify_error(e)
                    message = e.message if isinstance(e, ContentSyncError) else str(e)
                    result.attempted.append({"source": name, "outcome": "failed", "failure_kind": kind.value})
                    result.errors.append(f"{name}: {message}")
                    self.logger.warning(f"Release source {name} failed ({kind.value}): {message}")
                    if not RELEASE_FALLBACK_ON[kind]:
                        raise
                    continue

                result.attempted.append({"source": name, "outcome": "success"})
                result.add_source(source_result)
                execution.set_metadata(release_source=name)
                return result

        result.success = False
        result.error = "All release sources failed"
        return result

    # -- clips --------------------------------------------------------------

    async def _clips(self, execution: ExecutionLogger) -> SyncResult:
        auto_publish = self.settings.auto_publish.for_type(ContentType.VIDEO)
        limits = self.settings.limits
        result = SyncResult()

        async with self.context.session_factory() as session:
            clips = self.context.clip_adapter(session)
            source_result = SourceResult(source=clips.source)

            try:
                games = await clips.top_games(limits.top_games)
            except ContentSyncError as e:
                if classify_error(e) == FailureKind.NOT_CONFIGURED:
                    raise
                result.add_source(SourceResult(source=clips.source, errors=[f"{clips.source}: {e.message}"],
                                               failure_kind=classify_error(e).value))
                result.success = False
                result.error = "Clip source failed"
                return result

            semaphore = asyncio.Semaphore(self.settings.processing.parallel_sources)

            async def media_for(game: Dict[str, Any]) -> Dict[str, list]:
                async with semaphore:
                    return await clips.fetch_game_media(game, limits.clips_per_game, limits.videos_per_game)

            selected = games[: limits.clip_games]
            media = await asyncio.gather(*(media_for(game) for game in selected))

        builders: List[Callable[[], Optional[ContentItem]]] = []
        for game, game_media in zip(selected, media):
            source_result.errors.extend(f"{clips.source}: {err}" for err in game_media["errors"])
            for clip in game_media["clips"]:
                builders.append(partial(normalizer.normalize_clip, clip, game, auto_publish))
            for video in game_media["videos"]:
                builders.append(partial(normalizer.normalize_video, video, game, auto_publish))
        source_result.fetched = len(builders)
        self._store_all(source_result, builders)
        result.add_source(source_result)
        return result


def _first_line(error: Exception) -> str:
    text = str(error).strip()
    return text.splitlines()[0] if text else type(error).__name__


class _JobFailed(ContentSyncError):
    """Terminal failure of a job whose sources all failed."""

    def __init__(self, message: str):
        super().__init__(message, recoverable=True)
