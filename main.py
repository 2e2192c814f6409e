#!/usr/bin/env python3
"""
Command line entry point for the article extractor.

Modes:
  extract     Race the configured proxies for a URL and print the content HTML
  process     Run classification/extraction on a saved response body (no network)
  classify    Print how a saved response body would be interpreted
  strategies  List the configured retrieval strategies
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

from config import config, get_logger
from classifier import classify_payload
from errors import AllAttemptsFailed, DeadlineExceeded, ExtractionCancelled, ExtractionError
from fetcher import ArticleFetcher, failure_summary
from strategies import load_strategies, select_strategies

logger = get_logger("main")


def _read_payload(file_path: str) -> str:
    return Path(file_path).read_text(encoding="utf-8", errors="replace")


async def run_extract(url: str, title: Optional[str], deadline_ms: Optional[int],
                      attempt_timeout_ms: Optional[int], keep_images: bool,
                      strategy_names: Optional[list]) -> int:
    strategies = select_strategies(load_strategies(), strategy_names)
    fetcher = ArticleFetcher(
        strategies=strategies,
        attempt_timeout=attempt_timeout_ms / 1000 if attempt_timeout_ms else None,
        deadline=deadline_ms / 1000 if deadline_ms else None,
        strip_images=False if keep_images else None,
    )
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        pass  # signal handlers are unavailable on some platforms

    try:
        content = await fetcher.extract(url, title=title, cancel_event=cancel_event)
    except ExtractionCancelled:
        logger.info("Extraction cancelled")
        return 130
    except (AllAttemptsFailed, DeadlineExceeded) as e:
        for line in failure_summary(e):
            logger.warning(line)
        print(e.user_message, file=sys.stderr)
        return 1
    except ExtractionError as e:
        print(e.user_message, file=sys.stderr)
        return 1
    print(content)
    return 0


def run_process(file_path: str, url: str, title: Optional[str], keep_images: bool) -> int:
    fetcher = ArticleFetcher(strategies=(), strip_images=False if keep_images else None)
    try:
        content = fetcher.process_payload(_read_payload(file_path), url, title)
    except ExtractionError as e:
        print(e.user_message, file=sys.stderr)
        return 1
    print(content)
    return 0


def run_classify(file_path: str) -> int:
    try:
        classified = classify_payload(_read_payload(file_path))
    except ExtractionError as e:
        print(f"error: {e.message}")
        return 1
    suffix = " (from JSON envelope)" if classified.from_envelope else ""
    print(f"{classified.kind.value}{suffix}: {len(classified.text)} chars")
    return 0


def run_strategies() -> int:
    for strategy in load_strategies():
        print(f"{strategy.name}\t{strategy.template}")
    return 0


def main():
    """Main entry point."""

    parser = argparse.ArgumentParser(description='Article content extractor')
    parser.add_argument('mode', choices=['extract', 'process', 'classify', 'strategies'],
                        help='Operation mode')
    parser.add_argument('target', nargs='?',
                        help='URL (extract) or saved response file (process/classify)')
    parser.add_argument('--url', type=str,
                        help='Article URL used as link base in process mode')
    parser.add_argument('--title', type=str,
                        help='Display title of the article')
    parser.add_argument('--deadline-ms', type=int,
                        help=f'Overall deadline (default {config.OVERALL_DEADLINE_MS})')
    parser.add_argument('--attempt-timeout-ms', type=int,
                        help=f'Per-attempt timeout (default {config.ATTEMPT_TIMEOUT_MS})')
    parser.add_argument('--keep-images', action='store_true',
                        help='Do not strip images from the extracted content')
    parser.add_argument('--strategy', action='append', dest='strategies',
                        help='Only use the named strategy (repeatable)')

    args = parser.parse_args()
    logger.debug(f"Configuration: {config.get_config_summary()}")

    if args.mode != 'strategies' and not args.target:
        parser.error(f"{args.mode} requires a target")
    if args.mode == 'process' and not args.url:
        parser.error("process requires --url")

    try:
        if args.mode == 'extract':
            code = asyncio.run(run_extract(
                args.target, args.title, args.deadline_ms, args.attempt_timeout_ms,
                args.keep_images, args.strategies,
            ))
        elif args.mode == 'process':
            code = run_process(args.target, args.url, args.title, args.keep_images)
        elif args.mode == 'classify':
            code = run_classify(args.target)
        else:
            code = run_strategies()
    except (ValueError, OSError) as e:
        logger.error(str(e))
        code = 2
    except KeyboardInterrupt:
        logger.info("Interrupted")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
