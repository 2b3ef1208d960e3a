"""CLI entry point for link2vault."""

import asyncio
import logging
import signal
import sys
from collections import Counter

import click

from .config import DETAIL_LEVELS, PROVIDERS, STATIC_BACKENDS, load_config
from .error_categorizer import ERROR_SUGGESTIONS, QUALITY_SUGGESTIONS, ErrorCategory
from .exceptions import ConfigError, Link2VaultError
from .llm import get_llm_provider
from .models import UrlStatus
from .orchestrator import BatchRunner
from .state import BatchStateStore
from .tabs.playwright import PlaywrightBrowser
from .vault import VaultClient

_FAILED_STATUSES = ("failed", "timeout")


def read_url_file(path: str) -> list[str]:
    """One URL per line; blank lines and ``#`` comments are ignored."""
    urls = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                urls.append(line)
    return urls


def _dedupe(urls) -> list[str]:
    return list(dict.fromkeys(urls))


def _suggestion(result) -> str:
    if result.content_quality is not None and result.content_quality.reason is not None:
        return QUALITY_SUGGESTIONS[result.content_quality.reason]
    if result.error_category:
        return ERROR_SUGGESTIONS[ErrorCategory(result.error_category)]
    return ""


def _print_summary(results) -> None:
    counts = Counter(r.status for r in results)
    click.echo("\n" + ", ".join(f"{count} {status}" for status, count in sorted(counts.items())))
    for result in results:
        if result.status in ("success", "skipped", "cancelled"):
            continue
        click.echo(f"  {result.status}: {result.url}", err=True)
        if result.error:
            click.echo(f"    {result.error}", err=True)
        suggestion = _suggestion(result)
        if suggestion:
            click.echo(f"    -> {suggestion}", err=True)


async def _check_vault(config) -> bool:
    async with VaultClient(config.vault_url, config.vault_api_key) as client:
        return await client.test_connection()


async def _run_batch(runner: BatchRunner, urls: list[str], verbose: bool):
    def on_progress(url, status, index, total):
        if verbose or UrlStatus(status).is_terminal:
            click.echo(f"[{index + 1}/{total}] {status.value:<12} {url}")

    def on_retry(url, attempt, total):
        click.echo(f"  retrying {url} ({attempt}/{total})")

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, runner.cancel)
    except (NotImplementedError, RuntimeError):
        # No signal handlers on this platform's event loop
        pass
    try:
        return await runner.run(urls, on_progress=on_progress, on_retry=on_retry)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


@click.command()
@click.argument("urls", nargs=-1)
@click.option(
    "--file", "-f", "url_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Read URLs from a file, one per line (# starts a comment)",
)
@click.option(
    "--provider",
    type=click.Choice(PROVIDERS),
    default=None,
    help="LLM provider (default: openrouter, or LLM_PROVIDER env var)",
)
@click.option(
    "--model",
    type=str,
    default=None,
    help="LLM model to use (default depends on the provider)",
)
@click.option(
    "--vault-url",
    type=str,
    default=None,
    help="Obsidian Local REST API URL (default: OBSIDIAN_API_URL or http://localhost:27123)",
)
@click.option(
    "--detail-level",
    type=click.Choice(DETAIL_LEVELS),
    default=None,
    help="Summary detail level (default: standard)",
)
@click.option(
    "--static-backend",
    type=click.Choice(STATIC_BACKENDS),
    default=None,
    help="How ordinary web pages are fetched (default: direct)",
)
@click.option(
    "--headed",
    is_flag=True,
    default=False,
    help="Show the browser window used for social media pages",
)
@click.option(
    "--check",
    is_flag=True,
    default=False,
    help="Check the vault connection and exit",
)
@click.option(
    "--history",
    "history_limit",
    type=int,
    default=None,
    help="Show the N most recent results and exit",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output",
)
def main(urls, url_file, provider, model, vault_url, detail_level, static_backend,
         headed, check, history_limit, verbose):
    """Turn bookmarked URLs into Obsidian notes.

    Each URL is fetched (social media pages through a background browser),
    summarized and categorized by an LLM, and written into your vault
    through the Local REST API plugin.

    Example: link2vault https://example.com/article https://x.com/user/status/1
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Load config
    try:
        config = load_config(
            provider=provider,
            model=model,
            vault_url=vault_url,
            detail_level=detail_level,
            static_backend=static_backend,
            headless=False if headed else None,
            verbose=verbose,
            validate=not (check or history_limit is not None),
        )
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(2)

    if history_limit is not None:
        for result in BatchStateStore(config.state_dir).get_history(history_limit):
            line = f"{result.status:<10} {result.url}"
            if result.folder:
                line += f" -> {result.folder}"
            elif result.error:
                line += f" ({result.error})"
            click.echo(line)
        sys.exit(0)

    if check:
        if not config.vault_api_key:
            click.echo("Configuration error: OBSIDIAN_API_KEY is required.", err=True)
            sys.exit(2)
        if asyncio.run(_check_vault(config)):
            click.echo(f"Vault reachable at {config.vault_url}")
            sys.exit(0)
        click.echo(f"Vault not reachable or key rejected at {config.vault_url}", err=True)
        sys.exit(2)

    all_urls = list(urls)
    if url_file:
        all_urls.extend(read_url_file(url_file))
    all_urls = _dedupe(all_urls)
    if not all_urls:
        click.echo("No URLs given. Pass URLs as arguments or with --file.", err=True)
        sys.exit(2)

    if verbose:
        click.echo(f"Provider: {config.llm_provider} ({config.default_model})")
        click.echo(f"Vault: {config.vault_url}")

    # Initialize LLM
    try:
        llm = get_llm_provider(config)
    except Exception as e:
        click.echo(f"Failed to initialize LLM provider: {e}", err=True)
        sys.exit(2)

    async def start_browser():
        return await PlaywrightBrowser(headless=config.headless, agent_dir=config.agent_dir).start()

    runner = BatchRunner(config, llm, browser_factory=start_browser)
    try:
        results = asyncio.run(_run_batch(runner, all_urls, verbose))
    except Link2VaultError as e:
        click.echo(f"Batch failed: {e}", err=True)
        sys.exit(2)

    _print_summary(results)

    # Exit code
    problems = [r for r in results if r.status not in ("success", "skipped")]
    if all(r.status in _FAILED_STATUSES for r in results):
        sys.exit(2)
    elif problems:
        sys.exit(1)
    else:
        click.echo("\nDone!")
        sys.exit(0)
