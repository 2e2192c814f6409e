#!/usr/bin/env python3
"""
Article fetcher: races retrieval strategies and extracts readable content.

Given an article URL, every configured retrieval strategy (a forwarding
proxy) is tried at once. Each attempt has its own timeout; the whole race is
bounded by an overall deadline and can be cancelled by the caller. The first
attempt that yields non-empty content wins and the others are cancelled. If
every attempt fails, the error of the first strategy in table order is
surfaced with a hint to open the original page.
"""

from asyncio import (
    CancelledError, Event, FIRST_COMPLETED, Task, TimeoutError,
    create_task, gather, get_running_loop, wait, wait_for,
)
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from time import monotonic
from typing import Dict, List, Optional, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout

from config import config, get_logger
from telemetry import init_telemetry, trace_span
from classifier import PayloadKind, classify_payload
from errors import (
    AllAttemptsFailed, AttemptTimeout, ClassificationEmpty, DeadlineExceeded,
    ExtractionCancelled, ExtractionEmpty, ExtractionError, NetworkError,
)
from extractor import ExtractorConfig, extract_content
from markdown_renderer import render_markdown
from postprocess import finalize_content
from strategies import RetrievalStrategy, load_strategies
from utils import fix_broken_em_dash, format_client_error, format_duration, summarize_proxy

# Module-specific logger
logger = get_logger("fetcher")
init_telemetry("article-extractor")


@dataclass
class FetchAttempt:
    """State of one strategy's attempt, owned by the race that created it."""
    strategy: RetrievalStrategy
    target_url: str
    proxied_url: str
    index: int
    started: float = field(default_factory=monotonic)
    finished: Optional[float] = None
    content: Optional[str] = None
    error: Optional[ExtractionError] = None

    @property
    def ok(self) -> bool:
        return bool(self.content)

    @property
    def duration(self) -> float:
        end = self.finished if self.finished is not None else monotonic()
        return end - self.started


class ArticleFetcher:
    """Fetches a page through several proxies concurrently and extracts its content.

    Args:
        strategies: Ordered retrieval strategy table (defaults to configuration)
        attempt_timeout: Per-attempt timeout in seconds
        deadline: Overall deadline in seconds
        session: Optional shared aiohttp session; one is created per call otherwise
        extractor_config: Readability extractor calibration
        strip_images: Post-processing image policy (defaults to config.STRIP_IMAGES)
        markdown_engine: "lite" or "markdown" (defaults to config.MARKDOWN_ENGINE)
    """

    def __init__(
        self,
        strategies: Optional[Sequence[RetrievalStrategy]] = None,
        attempt_timeout: Optional[float] = None,
        deadline: Optional[float] = None,
        session: Optional[ClientSession] = None,
        extractor_config: Optional[ExtractorConfig] = None,
        strip_images: Optional[bool] = None,
        markdown_engine: Optional[str] = None,
    ) -> None:
        self.strategies = tuple(strategies) if strategies is not None else load_strategies()
        self.attempt_timeout = attempt_timeout if attempt_timeout is not None else config.ATTEMPT_TIMEOUT_MS / 1000
        self.deadline = deadline if deadline is not None else config.OVERALL_DEADLINE_MS / 1000
        self.session = session
        self.extractor_config = extractor_config or ExtractorConfig.from_config()
        self.strip_images = config.STRIP_IMAGES if strip_images is None else strip_images
        self.markdown_engine = markdown_engine or config.MARKDOWN_ENGINE

    @asynccontextmanager
    async def _session_scope(self):
        if self.session is not None:
            yield self.session
            return
        async with ClientSession(headers={'User-Agent': config.USER_AGENT}) as session:
            yield session

    def process_payload(self, body: str, url: str, title: Optional[str] = None) -> str:
        """Classify a response body, extract or render it, and post-process.

        Raises:
            EnvelopeError: the proxy wrapped an error in a JSON envelope
            ClassificationEmpty: no HTML or Markdown structure was found
            ExtractionEmpty: nothing survived extraction
        """
        classified = classify_payload(fix_broken_em_dash(body or ""))
        if classified.kind == PayloadKind.HTML:
            fragment = extract_content(classified.text, url, self.extractor_config)
        elif classified.kind == PayloadKind.MARKDOWN:
            fragment = render_markdown(classified.text, url, engine=self.markdown_engine)
        else:
            raise ClassificationEmpty()

        if not fragment.strip():
            raise ExtractionEmpty()
        content = finalize_content(
            fragment,
            title=title,
            strip_images=self.strip_images,
            parser=self.extractor_config.parser,
        )
        if not content:
            raise ExtractionEmpty()
        return content

    async def _fetch_body(self, attempt: FetchAttempt, session: ClientSession) -> str:
        try:
            async with session.get(
                attempt.proxied_url,
                headers={'User-Agent': config.USER_AGENT},
                timeout=ClientTimeout(total=self.attempt_timeout),
            ) as response:
                if not 200 <= response.status < 300:
                    raise NetworkError(f"Request failed (HTTP {response.status})", status=response.status)
                return await response.text(errors="replace")
        except TimeoutError:
            # aiohttp timeouts subclass ClientError too
            raise
        except ClientError as e:
            raise NetworkError(f"Network error: {format_client_error(e)}") from e

    @trace_span(
        "fetch_attempt",
        tracer_name="fetcher",
        attr_from_args=lambda self, attempt, session, title=None: {
            "strategy.name": attempt.strategy.name,
            "entry.url": attempt.target_url,
        },
    )
    async def _run_attempt(self, attempt: FetchAttempt, session: ClientSession, title: Optional[str] = None) -> FetchAttempt:
        """Run one attempt to completion, recording its outcome instead of raising.

        Only cancellation propagates.
        """
        name = attempt.strategy.name
        try:
            body = await wait_for(self._fetch_body(attempt, session), timeout=self.attempt_timeout)
            attempt.content = self.process_payload(body, attempt.target_url, title)
        except TimeoutError:
            attempt.error = AttemptTimeout(self.attempt_timeout)
        except ExtractionError as e:
            attempt.error = e
        except (OSError, ValueError, UnicodeError) as e:
            attempt.error = NetworkError(f"Unexpected error: {e}")
        except CancelledError:
            logger.debug(f"[{name}] cancelled after {format_duration(attempt.duration)}")
            raise
        finally:
            attempt.finished = monotonic()

        if attempt.error is not None:
            attempt.error.strategy = name
            logger.warning(
                "[%s] failed via %s in %s: %s",
                name,
                summarize_proxy(attempt.proxied_url),
                format_duration(attempt.duration),
                attempt.error.message,
            )
        else:
            logger.info(
                "[%s] extracted %d chars via %s in %s",
                name,
                len(attempt.content),
                summarize_proxy(attempt.proxied_url),
                format_duration(attempt.duration),
            )
        return attempt

    @trace_span(
        "extract",
        tracer_name="fetcher",
        attr_from_args=lambda self, url, *args, **kwargs: {"entry.url": url},
    )
    async def extract(
        self,
        url: str,
        title: Optional[str] = None,
        deadline: Optional[float] = None,
        cancel_event: Optional[Event] = None,
    ) -> str:
        """Return the first successfully extracted content fragment for ``url``.

        Args:
            url: Article URL
            title: Display title (the duplicate leading <h1> is removed)
            deadline: Overrides the overall deadline, in seconds
            cancel_event: Setting this event abandons the request

        Raises:
            ExtractionCancelled: cancel_event was set
            DeadlineExceeded: nothing succeeded before the deadline
            AllAttemptsFailed: every strategy failed
        """
        deadline = self.deadline if deadline is None else deadline
        if cancel_event is not None and cancel_event.is_set():
            raise ExtractionCancelled()
        if not self.strategies:
            raise AllAttemptsFailed([], hint=config.FAILURE_HINT)

        logger.info(f"Fetching original content from: {url} ({len(self.strategies)} strategies)")
        loop = get_running_loop()
        expires_at = loop.time() + deadline
        failures: Dict[int, ExtractionError] = {}

        async with self._session_scope() as session:
            tasks: Dict[Task, FetchAttempt] = {}
            for index, strategy in enumerate(self.strategies):
                attempt = FetchAttempt(strategy, url, strategy.proxied_url(url), index)
                task = create_task(self._run_attempt(attempt, session, title), name=strategy.name)
                tasks[task] = attempt
            watcher = create_task(cancel_event.wait()) if cancel_event is not None else None

            pending = set(tasks)
            try:
                while pending:
                    remaining = expires_at - loop.time()
                    if remaining <= 0:
                        raise DeadlineExceeded(deadline, _in_order(failures), hint=config.FAILURE_HINT)
                    waiting = pending | {watcher} if watcher else pending
                    done, _ = await wait(waiting, timeout=remaining, return_when=FIRST_COMPLETED)
                    if watcher is not None and watcher in done:
                        logger.info(f"Extraction of {url} cancelled by caller")
                        raise ExtractionCancelled()
                    if not done:
                        logger.warning(
                            "Deadline of %.1fs reached for %s, pending: %s",
                            deadline,
                            url,
                            [tasks[t].strategy.name for t in pending],
                        )
                        raise DeadlineExceeded(deadline, _in_order(failures), hint=config.FAILURE_HINT)

                    for task in sorted(done, key=lambda t: tasks[t].index):
                        pending.discard(task)
                        attempt = tasks[task]
                        error = task.exception()
                        if error is not None:
                            logger.error(f"[{attempt.strategy.name}] crashed: {error!r}")
                            attempt.error = ExtractionError(f"Unexpected error: {error}", strategy=attempt.strategy.name)
                        if attempt.ok:
                            logger.info(f"Race winner: {attempt.strategy.name} for {url}")
                            return attempt.content
                        failures[attempt.index] = attempt.error or ExtractionEmpty(strategy=attempt.strategy.name)
            finally:
                leftovers = [t for t in pending if not t.done()]
                if watcher is not None:
                    leftovers.append(watcher)
                for task in leftovers:
                    task.cancel()
                if leftovers:
                    await gather(*leftovers, return_exceptions=True)

        ordered = _in_order(failures)
        logger.error(f"All {len(ordered)} strategies failed for {url}")
        raise AllAttemptsFailed(ordered, hint=config.FAILURE_HINT)


def _in_order(failures: Dict[int, ExtractionError]) -> List[ExtractionError]:
    return [failures[i] for i in sorted(failures)]


async def extract(
    url: str,
    deadline: Optional[float] = None,
    cancel_event: Optional[Event] = None,
    title: Optional[str] = None,
) -> str:
    """Module-level entry point using the configured strategy table."""
    return await ArticleFetcher().extract(url, title=title, deadline=deadline, cancel_event=cancel_event)


def failure_summary(error) -> List[str]:
    """One line per failed strategy of AllAttemptsFailed or DeadlineExceeded."""
    return [f"{e.strategy or '?'}: {e.message}" for e in error.failures]
