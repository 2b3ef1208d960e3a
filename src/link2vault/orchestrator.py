"""Batch orchestration: run each URL through extract, assess, generate, write.

URLs are processed one at a time. Every URL ends with exactly one terminal
status and one ProcessingResult, whatever fails along the way.
"""

import asyncio
import dataclasses
import logging
from typing import Awaitable, Callable, Optional

from .config import Config
from .error_categorizer import (
    ErrorCategory,
    categorize_error,
    categorize_extraction_error,
    categorize_quality_reason,
)
from .exceptions import BatchAlreadyActiveError, TabError, VaultClientError
from .extractors import ContentRouter, make_static_extractor
from .formatter import format_note, format_tag_hub_note, hub_link_line
from .generators import CategorizeStage, SummarizeStage, build_note
from .llm.base import LLMProvider
from .models import (
    BatchState,
    ExtractedContent,
    ProcessingResult,
    QualityReason,
    UrlStatus,
    VaultContext,
)
from .progress import ProgressChannel, ProgressEvent
from .quality import assess_content_quality
from .router import is_rendered_url
from .state import BatchStateStore
from .tabs.base import TabBrowser
from .tabs.pool import TabPool
from .utils import generate_filename
from .vault import VaultClient, check_duplicate
from .vault_context import build_vault_context

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, UrlStatus, int, int], None]
Extractor = Callable[[str], Awaitable[ExtractedContent]]

DUPLICATE_REASON = "Duplicate - note already exists in vault"
HUB_FOLDER = "Tags"

# Reasons kept for a human to look at rather than failed outright
_REVIEW_REASONS = frozenset({QualityReason.INSUFFICIENT_CONTENT, QualityReason.ERROR_PAGE})


class CancellationToken:
    """Cooperative cancellation flag, polled between URLs."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class _BatchTracker:
    """Publishes a fresh BatchState for every transition."""

    def __init__(
        self,
        urls: list[str],
        store: Optional[BatchStateStore],
        channel: Optional[ProgressChannel],
        on_progress: Optional[ProgressCallback],
    ):
        self.state = BatchState.start(urls)
        self._store = store
        self._channel = channel
        self._on_progress = on_progress
        self._positions = {url: i for i, url in enumerate(urls)}
        self._save()

    @property
    def results(self) -> list[ProcessingResult]:
        return list(self.state.results)

    def transition(self, url: str, status: UrlStatus) -> None:
        statuses = dict(self.state.url_statuses)
        statuses[url] = status
        self.state = dataclasses.replace(self.state, url_statuses=statuses)
        self._save()
        self._notify(url, status)

    def record(self, result: ProcessingResult, status: UrlStatus) -> None:
        statuses = dict(self.state.url_statuses)
        statuses[result.url] = status
        self.state = dataclasses.replace(
            self.state,
            results=self.state.results + (result,),
            url_statuses=statuses,
        )
        self._save()
        self._notify(result.url, status)

    def finish(self, cancelled: bool = False, error: Optional[str] = None) -> None:
        self.state = dataclasses.replace(
            self.state, active=False, cancelled=cancelled, error=error
        )
        self._save()
        if self._store is None:
            return
        try:
            self._store.append_history(list(self.state.results))
        except OSError as e:
            logger.warning("Could not update history: %s", e)

    def _save(self) -> None:
        if self._store is None:
            return
        try:
            self._store.save_state(self.state)
        except OSError as e:
            logger.warning("Could not persist batch state: %s", e)

    def _notify(self, url: str, status: UrlStatus) -> None:
        index = self._positions[url]
        total = len(self.state.urls)
        if self._on_progress is not None:
            try:
                self._on_progress(url, status, index, total)
            except Exception:
                logger.exception("Progress callback failed for %s (%s)", url, status.value)
        if self._channel is not None and not self._channel.closed:
            self._channel.publish(ProgressEvent(url=url, status=status, index=index, total=total))


def _failed(url: str, error: str, category: ErrorCategory, **extra) -> ProcessingResult:
    return ProcessingResult(
        url=url, status="failed", error=error, error_category=category.value, **extra
    )


def _describe(err: BaseException) -> str:
    return str(err) or type(err).__name__


async def _write_tag_hubs(
    client: VaultClient,
    tags: list[str],
    note_title: str,
    created_hubs: set[str],
) -> None:
    """Link the new note from ``Tags/{tag}.md``; failures are only logged."""
    for tag in tags:
        hub_path = f"{HUB_FOLDER}/{tag}.md"
        try:
            if tag in created_hubs or await client.note_exists(hub_path):
                await client.append_to_note(hub_path, hub_link_line(note_title))
            else:
                await client.create_note(hub_path, format_tag_hub_note(tag, [note_title]))
                created_hubs.add(tag)
        except VaultClientError as e:
            logger.warning("Could not update tag hub %s: %s", hub_path, e)


async def _process_one(
    url: str,
    tracker: _BatchTracker,
    extract: Extractor,
    summarizer: SummarizeStage,
    categorizer: CategorizeStage,
    client: VaultClient,
    vault_context: VaultContext,
    created_hubs: set[str],
) -> None:
    tracker.transition(url, UrlStatus.EXTRACTING)
    content = await extract(url)

    if not content.ok:
        error = content.error or "Extraction failed"
        category = categorize_extraction_error(error)
        if category is ErrorCategory.TIMEOUT:
            result = ProcessingResult(
                url=url, status="timeout", error=error, error_category=category.value
            )
            tracker.record(result, UrlStatus.TIMEOUT)
        else:
            tracker.record(_failed(url, error, category), UrlStatus.FAILED)
        logger.info("Extraction failed for %s: %s", url, error)
        return

    quality = assess_content_quality(content)
    if quality.is_low_quality:
        category = categorize_quality_reason(quality.reason)
        message = quality.detail or quality.reason.value
        if quality.reason in _REVIEW_REASONS:
            result = ProcessingResult(
                url=url,
                status="review",
                error=message,
                error_category=category.value,
                content_quality=quality,
            )
            tracker.record(result, UrlStatus.REVIEW)
        else:
            tracker.record(
                _failed(url, message, category, content_quality=quality), UrlStatus.FAILED
            )
        logger.info("Low-quality content for %s (%s): %s", url, quality.reason.value, message)
        return

    tracker.transition(url, UrlStatus.SUMMARIZING)
    summarized = await summarizer.summarize(content)

    tracker.transition(url, UrlStatus.CATEGORIZING)
    categorized = await categorizer.categorize(summarized, content, vault_context)
    note = build_note(content, summarized, categorized)

    tracker.transition(url, UrlStatus.CREATING)
    try:
        duplicate = await check_duplicate(url, client)
    except VaultClientError as e:
        logger.warning("Duplicate check failed for %s, continuing: %s", url, e)
        duplicate = False
    if duplicate:
        result = ProcessingResult(url=url, status="skipped", skip_reason=DUPLICATE_REASON)
        tracker.record(result, UrlStatus.SKIPPED)
        return

    filename = generate_filename(note.title)
    path = f"{note.suggested_folder}/{filename}" if note.suggested_folder else filename
    await client.create_note(path, format_note(note))
    logger.info("Created %s", path)

    await _write_tag_hubs(client, note.suggested_tags, filename[:-3], created_hubs)

    result = ProcessingResult(
        url=url, status="success", folder=note.suggested_folder, note=note
    )
    tracker.record(result, UrlStatus.DONE)


async def process_urls(
    urls: list[str],
    config: Config,
    provider: LLMProvider,
    on_progress: Optional[ProgressCallback] = None,
    extract: Optional[Extractor] = None,
    cancel_token: Optional[CancellationToken] = None,
    client: Optional[VaultClient] = None,
    store: Optional[BatchStateStore] = None,
    channel: Optional[ProgressChannel] = None,
) -> list[ProcessingResult]:
    """Process ``urls`` sequentially and return one result per URL, in order."""
    tracker = _BatchTracker(urls, store, channel, on_progress)
    extract = extract or ContentRouter(make_static_extractor(config))
    owns_client = client is None
    if client is None:
        client = VaultClient(config.vault_url, config.vault_api_key)

    try:
        try:
            vault_context = await build_vault_context(
                client, config.tag_groups, config.vault_organization
            )
        except Exception as e:
            error = _describe(e)
            category = categorize_error(e)
            logger.error("Could not read vault structure: %s", error)
            for url in urls:
                tracker.record(_failed(url, error, category), UrlStatus.FAILED)
            tracker.finish(error=error)
            return tracker.results

        summarizer = SummarizeStage(provider, config.summary_detail_level)
        categorizer = CategorizeStage(provider)
        created_hubs: set[str] = set()

        for position, url in enumerate(urls):
            if cancel_token is not None and cancel_token.cancelled:
                remaining = urls[position:]
                logger.info("Batch cancelled; %d URL(s) not processed", len(remaining))
                for pending in remaining:
                    result = ProcessingResult(url=pending, status="cancelled", error="Cancelled")
                    tracker.record(result, UrlStatus.CANCELLED)
                tracker.finish(cancelled=True)
                return tracker.results

            try:
                await _process_one(
                    url, tracker, extract, summarizer, categorizer,
                    client, vault_context, created_hubs,
                )
            except Exception as e:
                error = _describe(e)
                category = categorize_error(e)
                logger.warning("Processing %s failed (%s): %s", url, category.value, error)
                tracker.record(_failed(url, error, category), UrlStatus.FAILED)

        tracker.finish()
        return tracker.results
    finally:
        if owns_client:
            await client.aclose()


class BatchRunner:
    """Runs one batch at a time and owns its cancellation, tabs and state.

    ``browser_factory`` returns a started TabBrowser when the batch holds
    rendered-class URLs; without it those URLs fall back to static fetch.
    """

    def __init__(
        self,
        config: Config,
        provider: LLMProvider,
        store: Optional[BatchStateStore] = None,
        browser_factory: Optional[Callable[[], Awaitable[TabBrowser]]] = None,
        client: Optional[VaultClient] = None,
    ):
        self.config = config
        self.provider = provider
        self.store = store if store is not None else BatchStateStore(config.state_dir)
        self.channel = ProgressChannel()
        self._browser_factory = browser_factory
        self._client = client
        self._token: Optional[CancellationToken] = None
        self._pool: Optional[TabPool] = None
        self._clearing: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._token is not None

    async def run(
        self,
        urls: list[str],
        on_progress: Optional[ProgressCallback] = None,
        on_retry: Optional[Callable[[str, int, int], None]] = None,
    ) -> list[ProcessingResult]:
        if self.active:
            raise BatchAlreadyActiveError("A batch is already running")
        self._token = CancellationToken()
        self.channel = ProgressChannel()

        try:
            if self._browser_factory is not None and any(is_rendered_url(u) for u in urls):
                try:
                    self._pool = TabPool(await self._browser_factory())
                except TabError as e:
                    logger.warning("Browser unavailable, using static fetch for all URLs: %s", e)
                else:
                    self._pool.preload_tabs(urls)

            extract = ContentRouter(
                make_static_extractor(self.config), tab_pool=self._pool, on_retry=on_retry
            )
            return await process_urls(
                urls,
                self.config,
                self.provider,
                on_progress=on_progress,
                extract=extract,
                cancel_token=self._token,
                client=self._client,
                store=self.store,
                channel=self.channel,
            )
        finally:
            if self._clearing is not None:
                await self._clearing
                self._clearing = None
            if self._pool is not None:
                await self._pool.close()
                self._pool = None
            self.channel.close()
            self._token = None

    def cancel(self) -> None:
        """Stop after the current URL and start closing every open tab.

        Safe to call from a signal handler or a progress callback.
        """
        if self._token is None or self._token.cancelled:
            return
        logger.info("Cancellation requested")
        self._token.cancel()
        if self._pool is not None:
            self._clearing = asyncio.get_running_loop().create_task(
                self._pool.clear_all_processing_tabs()
            )
