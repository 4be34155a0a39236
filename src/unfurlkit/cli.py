"""Command-line interface for unfurlkit."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional

import click
import structlog

from unfurlkit import __version__
from unfurlkit.config import Config
from unfurlkit.config.config import find_config_file
from unfurlkit.crawler import HttpClient
from unfurlkit.extractor import ExifPlugin, HtmlPlugin
from unfurlkit.metadata import tokenize
from unfurlkit.observability import MetricsManager, configure_logging
from unfurlkit.pipeline import url_scraper
from unfurlkit.protocols import UnfurlError
from unfurlkit.utils.streams import BytesStream

logger = structlog.get_logger(__name__)


def _load_config(config_path: Optional[Path]) -> Config:
    path = config_path or find_config_file()
    if path is not None:
        return Config.from_yaml(path)
    return Config()


def _dump(data: Dict[str, Any], pretty: bool) -> str:
    if pretty:
        return json.dumps(data, indent=2, ensure_ascii=False)
    return json.dumps(data, ensure_ascii=False)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file path")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides the configuration file)",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], log_level: Optional[str]) -> None:
    """unfurlkit - turn URLs into rich link-preview snippets."""
    ctx.ensure_object(dict)
    loaded = _load_config(Path(config) if config else None)
    if log_level:
        loaded.monitoring.log_level = log_level
    ctx.obj["config"] = loaded

    configure_logging(loaded.monitoring)

    if loaded.monitoring.prometheus_port:
        ctx.obj["metrics"] = MetricsManager(loaded.monitoring)
        ctx.obj["metrics"].start()


@cli.command()
@click.argument("url")
@click.option("--pretty", is_flag=True, help="Indent the JSON output")
@click.option("--html-only", is_flag=True, help="Only describe HTML pages; tokenizer errors are fatal")
@click.pass_context
def scrape(ctx: click.Context, url: str, pretty: bool, html_only: bool) -> None:
    """Fetch URL and print its snippet as JSON."""
    config: Config = ctx.obj["config"]

    if html_only:
        plugins = [HtmlPlugin(settings=config.extraction, concurrent=False)]
    else:
        plugins = [HtmlPlugin(settings=config.extraction), ExifPlugin(settings=config.extraction)]

    async def run_scrape() -> Dict[str, Any]:
        async with HttpClient(config) as client:
            snippet = await url_scraper(client, plugins)(url)
            return snippet.to_dict()

    try:
        result = asyncio.run(run_scrape())
    except UnfurlError as e:
        raise click.ClickException(str(e)) from e

    click.echo(_dump(result, pretty))


@cli.command()
@click.argument("html_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--base-url", default="", help="URL relative links resolve against")
@click.option("--encoding", default="utf-8", help="Charset of the file")
@click.option("--pretty", is_flag=True, help="Indent the JSON output")
def inspect(html_file: Path, base_url: str, encoding: str, pretty: bool) -> None:
    """Print the raw metadata found in a local HTML file."""

    async def run_tokenize() -> Dict[str, Any]:
        bag = await tokenize(BytesStream(html_file.read_bytes()), base_url, encoding=encoding)
        return bag.as_dict()

    try:
        result = asyncio.run(run_tokenize())
    except UnfurlError as e:
        raise click.ClickException(str(e)) from e

    click.echo(_dump(result, pretty))


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
