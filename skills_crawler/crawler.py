"""
Skills Crawler
==============
Orchestrates one crawl: seeds targets from the rule set, fetches them on a
bounded worker pool, turns HTML pages into skill documents, mines feeds for
more targets, and follows in-scope links.

Target lifecycle::

    Discovered → Fetching → Extracted | NotModified | Rejected | Errored

Every target is claimed in the shared ``CrawlContext`` before it is
submitted, so a URL is processed at most once per run no matter how many
pages link to it concurrently.  Workers never submit work themselves: they
return claimed targets inside their ``TargetResult`` and the orchestration
loop submits them.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

import requests

from .exceptions import (
    ContentTypeMismatch, SkillsCrawlerError, TransportError, WriteError,
)
from .extractor import ContentExtractor, ExtractedPage, render_markdown
from .feeds import is_feed, is_html, mine_feed_links
from .fetcher import Fetcher, FetchResult, create_session
from .frontmatter import (
    SkillDocument, http_date_now, read_last_modified, render_skill_document,
    sanitize_description, slugify_name,
)
from .paths import OutputLocation, derive_output_location, skill_name_for
from .rules import RuleSet, ScopeRule, compile_rules
from .run_config import SkillsRunConfig
from .scope_filter import is_within_scope
from .utils import ProgressTracker, RetryHandler, normalize_url

logger = logging.getLogger(__name__)


class TargetState(str, Enum):
    DISCOVERED = "discovered"
    FETCHING = "fetching"
    EXTRACTED = "extracted"
    NOT_MODIFIED = "not_modified"
    REJECTED = "rejected"
    ERRORED = "errored"


class TargetOrigin(str, Enum):
    SEED = "seed"
    LINK = "link"
    FEED = "feed"


@dataclass(frozen=True)
class CrawlTarget:
    """A claimed URL together with the allow rule that owns it."""
    url: str
    rule: ScopeRule
    origin: TargetOrigin = TargetOrigin.SEED

    @property
    def bundle_url(self) -> Optional[str]:
        return self.rule.url if self.rule.bundle else None


@dataclass
class TargetResult:
    """Outcome of one pipeline pass over one target."""
    url: str
    state: TargetState
    message: str = ""
    location: Optional[OutputLocation] = None
    discovered: List[CrawlTarget] = field(default_factory=list)
    feed: bool = False


@dataclass
class CrawlResult:
    """
    Result of a crawl run.
    """
    results: List[TargetResult] = field(default_factory=list)
    stats: Dict = field(default_factory=dict)
    interrupted: bool = False

    def by_state(self, state: TargetState) -> List[TargetResult]:
        return [r for r in self.results if r.state is state]

    @property
    def written(self) -> List[TargetResult]:
        return [r for r in self.results if r.state is TargetState.EXTRACTED and not r.feed]


class CrawlContext:
    """
    Crawl-wide state shared by the workers of one run.
    """

    def __init__(self, rules: RuleSet):
        self.rules = rules
        self._visited: Set[str] = set()
        self._lock = threading.Lock()

    def claim(self, url: str) -> bool:
        """Atomically mark *url* visited; False if it already was."""
        with self._lock:
            if url in self._visited:
                return False
            self._visited.add(url)
            return True

    @property
    def visited_count(self) -> int:
        with self._lock:
            return len(self._visited)


class SkillsCrawler:
    """
    Rule-driven documentation crawler producing skill documents.
    """

    def __init__(
        self,
        config: Optional[SkillsRunConfig] = None,
        rules: Optional[RuleSet] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the crawler.

        Args:
            config: Run configuration
            rules: Compiled rule set; compiled from *config* when omitted
            session: HTTP session (replaced by a fake in tests)
        """
        self.config = config or SkillsRunConfig()
        self.rules = rules if rules is not None else compile_rules(self.config.collect_rules())

        self.fetcher = Fetcher(
            session if session is not None else create_session(self.config.user_agent),
            timeout=self.config.timeout,
        )
        self.retry_handler = RetryHandler(max_retries=self.config.max_retries)
        self.extractor = ContentExtractor()
        self.progress = ProgressTracker()

        # Callback for progress updates
        self._progress_callback: Optional[Callable[[TargetResult, Dict], None]] = None

        # Stop flag
        self._stop_event = threading.Event()

    def set_progress_callback(self, callback: Callable[[TargetResult, Dict], None]) -> None:
        """
        Set callback for progress updates.

        Args:
            callback: Function(target_result, stats)
        """
        self._progress_callback = callback

    def stop(self) -> None:
        """Request the crawler to stop; in-flight fetches still complete."""
        self._stop_event.set()
        logger.info("[CRAWL] Stop requested")

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    # -----------------------------------------------------------------------
    # Orchestration
    # -----------------------------------------------------------------------
    def crawl(self) -> CrawlResult:
        """
        Run one traversal over every seed of the rule set.

        Returns:
            CrawlResult with one TargetResult per processed target
        """
        self._stop_event.clear()
        self.progress = ProgressTracker()
        self.progress.start()

        context = CrawlContext(self.rules)
        result = CrawlResult()

        seeds = self._seed_targets(context)
        if not seeds:
            logger.warning("[CRAWL] No include rules configured, nothing to crawl")

        logger.info(
            f"[CRAWL] Starting crawl with {len(seeds)} seed(s) "
            f"and {self.config.workers} worker(s)"
        )

        workers = max(1, self.config.workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="skills-crawler") as pool:
            pending: Dict[Future, CrawlTarget] = {
                pool.submit(self.process_target, target, context): target
                for target in seeds
            }

            while pending:
                try:
                    done, _ = wait(pending, return_when=FIRST_COMPLETED)
                except KeyboardInterrupt:
                    logger.warning("[CRAWL] Interrupted, draining in-flight targets")
                    result.interrupted = True
                    self.stop()
                    continue

                if self.stop_requested:
                    for future in pending:
                        future.cancel()

                for future in done:
                    target = pending.pop(future)
                    if future.cancelled():
                        continue
                    try:
                        target_result = future.result()
                    except Exception as e:
                        logger.exception(f"[CRAWL] Unexpected failure on {target.url}")
                        target_result = self._finish(
                            TargetResult(target.url, TargetState.ERRORED, str(e))
                        )
                    result.results.append(target_result)

                    if self.stop_requested:
                        continue
                    for new_target in target_result.discovered:
                        pending[pool.submit(self.process_target, new_target, context)] = new_target

        self.progress.finish()
        result.stats = self.progress.get_stats()
        result.stats['urls_visited'] = context.visited_count
        logger.info(f"[CRAWL] Crawl finished. Stats: {result.stats}")
        return result

    def _seed_targets(self, context: CrawlContext) -> List[CrawlTarget]:
        targets = []
        for seed, rule in self.rules.seeds():
            url = normalize_url(seed)
            if not url:
                logger.warning(f"[CRAWL] Skipping seed that is not an http(s) URL: {seed}")
                continue
            if context.claim(url):
                owner = self.rules.governing_rule(url) or rule
                targets.append(CrawlTarget(url, owner, TargetOrigin.SEED))
        return targets

    # -----------------------------------------------------------------------
    # Per-target pipeline
    # -----------------------------------------------------------------------
    def process_target(self, target: CrawlTarget, context: CrawlContext) -> TargetResult:
        """
        Run the full pipeline for one claimed target.

        Rule check, path derivation, stored ``last_modified`` lookup, fetch,
        then HTML extraction and writing or feed mining.  Failures are
        converted into Rejected/Errored results and never propagate.
        """
        url = target.url

        if not self._allowed(target):
            logger.info(f"[CRAWL] Ignoring: {url}")
            return self._finish(TargetResult(url, TargetState.REJECTED, "excluded by scope rules"))

        location = derive_output_location(
            url,
            self.config.output,
            flat=self.config.flat,
            rename=self.config.file_rename,
            bundle_url=target.bundle_url,
        )
        stored_last_modified = read_last_modified(location.skill_path)

        logger.info(f"[CRAWL] Visiting: {url}")
        try:
            response = self.retry_handler.execute_with_retry(
                self.fetcher.fetch, url, stored_last_modified
            )
        except TransportError as e:
            logger.error(f"[CRAWL] Error visiting {url}: {e}")
            return self._finish(TargetResult(url, TargetState.ERRORED, str(e)))

        if response.not_modified:
            logger.info(f"[CRAWL] Not modified: {url}")
            return self._finish(TargetResult(url, TargetState.NOT_MODIFIED, location=location))

        try:
            if is_feed(url, response.content_type, response.body):
                return self._finish(self._handle_feed(target, response, context))
            if is_html(response.content_type):
                return self._finish(self._handle_page(target, response, location, context))
            raise ContentTypeMismatch(
                f"unsupported content type '{response.content_type or 'unknown'}'"
            )
        except ContentTypeMismatch as e:
            logger.debug(f"[CRAWL] Skipping {url}: {e}")
            return self._finish(TargetResult(url, TargetState.REJECTED, str(e)))
        except SkillsCrawlerError as e:
            logger.error(f"[CRAWL] Error processing {url}: {e}")
            return self._finish(TargetResult(url, TargetState.ERRORED, str(e), location=location))

    def _allowed(self, target: CrawlTarget) -> bool:
        """Seeds and feed entries answer to deny rules only; links need an allow match too."""
        if target.origin is TargetOrigin.LINK:
            return self.rules.is_visitable(target.url)
        return not self.rules.is_denied(target.url)

    def _handle_feed(
        self, target: CrawlTarget, response: FetchResult, context: CrawlContext
    ) -> TargetResult:
        logger.info(f"[FEED] Parsing XML feed: {target.url}")
        discovered = []
        for link in mine_feed_links(response.body, target.url):
            if self.rules.is_denied(link):
                logger.debug(f"[FEED] Ignoring denied entry: {link}")
                continue
            if context.claim(link):
                owner = self.rules.governing_rule(link) or target.rule
                discovered.append(CrawlTarget(link, owner, TargetOrigin.FEED))

        logger.info(f"[FEED] {target.url} → enqueued={len(discovered)}")
        return TargetResult(
            target.url,
            TargetState.EXTRACTED,
            f"feed with {len(discovered)} new entries",
            discovered=discovered,
            feed=True,
        )

    def _handle_page(
        self,
        target: CrawlTarget,
        response: FetchResult,
        location: OutputLocation,
        context: CrawlContext,
    ) -> TargetResult:
        page = self.extractor.extract(response.body, target.url)
        markdown = render_markdown(page.content_html)

        document = self._build_document(target, response, location, page, markdown)
        self._write_outputs(location, response.body, render_skill_document(document))

        discovered = []
        if target.rule.applies_to_subpaths:
            discovered = self._discover_links(target, page.links, context)

        logger.info(f"[WRITE] {target.url} → {location.skill_path}")
        return TargetResult(
            target.url,
            TargetState.EXTRACTED,
            f"{len(discovered)} new links",
            location=location,
            discovered=discovered,
        )

    def _build_document(
        self,
        target: CrawlTarget,
        response: FetchResult,
        location: OutputLocation,
        page: ExtractedPage,
        markdown: str,
    ) -> SkillDocument:
        name = skill_name_for(location, flat=self.config.flat, bundled=target.rule.bundle)
        last_modified = (
            response.header('Last-Modified')
            or response.header('Date')
            or http_date_now()
        )
        return SkillDocument(
            name=name or slugify_name(page.title),
            description=sanitize_description(page.description),
            source_url=target.url,
            last_modified=last_modified,
            title=page.title,
            body_markdown=markdown,
        )

    def _write_outputs(self, location: OutputLocation, raw_html: str, document: str) -> None:
        """Write the raw capture and the skill document."""
        try:
            location.raw_path.parent.mkdir(parents=True, exist_ok=True)
            location.skill_path.parent.mkdir(parents=True, exist_ok=True)
            location.raw_path.write_text(raw_html, encoding="utf-8")
            location.skill_path.write_text(document, encoding="utf-8")
        except OSError as e:
            raise WriteError(f"could not write {location.skill_path}: {e}") from e

    def _discover_links(
        self, target: CrawlTarget, links: List[str], context: CrawlContext
    ) -> List[CrawlTarget]:
        discovered = []
        out_of_scope = 0
        for link in links:
            if not is_within_scope(link, target.rule.url):
                out_of_scope += 1
                continue
            if not self.rules.is_visitable(link):
                continue
            if context.claim(link):
                owner = self.rules.governing_rule(link) or target.rule
                discovered.append(CrawlTarget(link, owner, TargetOrigin.LINK))

        logger.debug(
            f"[CRAWL] {target.url} → links={len(links)} "
            f"enqueued={len(discovered)} scope_rejected={out_of_scope}"
        )
        return discovered

    # -----------------------------------------------------------------------
    # Bookkeeping
    # -----------------------------------------------------------------------
    _COUNTERS = {
        TargetState.NOT_MODIFIED: 'pages_not_modified',
        TargetState.REJECTED: 'pages_rejected',
        TargetState.ERRORED: 'pages_failed',
    }

    def _finish(self, result: TargetResult) -> TargetResult:
        if result.state is TargetState.EXTRACTED:
            counter = 'feeds_parsed' if result.feed else 'pages_written'
        else:
            counter = self._COUNTERS[result.state]
        self.progress.increment(counter)

        if self._progress_callback:
            try:
                self._progress_callback(result, self.progress.get_stats())
            except Exception as e:
                logger.debug(f"Progress callback failed: {e}")
        return result

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.fetcher.close()


def crawl_skills(
    config: Optional[SkillsRunConfig] = None,
    progress_callback: Optional[Callable[[TargetResult, Dict], None]] = None,
    session: Optional[requests.Session] = None,
) -> CrawlResult:
    """
    Convenience function to run one crawl.

    Args:
        config: Run configuration (defaults when omitted)
        progress_callback: Progress update callback
        session: HTTP session to use instead of a fresh one
    """
    with SkillsCrawler(config, session=session) as crawler:
        if progress_callback:
            crawler.set_progress_callback(progress_callback)
        return crawler.crawl()
