"""Command-line interface for MarketLens."""

import base64
import json
import os
import sys
from pathlib import Path
from typing import Optional

import click
from loguru import logger

from marketlens.aggregation import result_to_document
from marketlens.config_loader import ensure_directories, load_config
from marketlens.diagnostics import DiagnosticTrail
from marketlens.pipeline import InvalidRequestError, build_request, run_scrape


def setup_logging(config: dict):
    """Setup logging configuration."""
    log_config = config.get("logging", {})
    level = log_config.get("level", "INFO")
    log_file = log_config.get("file", "data/logs/marketlens.log")

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}",
    )
    logger.add(
        log_file,
        level=level,
        rotation=log_config.get("rotation", "1 week"),
        retention=log_config.get("retention", "1 month"),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name} | {message}",
    )


@click.group()
@click.option("--config", "-c", type=click.Path(exists=True), help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """MarketLens - marketplace search-result scraper."""
    ctx.ensure_object(dict)

    try:
        cfg = load_config(config)
        ctx.obj["config"] = cfg
        ctx.obj["config_path"] = config

        ensure_directories(cfg)
        if verbose:
            cfg.setdefault("logging", {})["level"] = "DEBUG"
        setup_logging(cfg)

        logger.info("MarketLens initialized")

    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--amazon-url", "-a", default=None, help="Amazon search-results URL")
@click.option("--flipkart-url", "-f", default=None, help="Flipkart search-results URL")
@click.option("--debug", "-d", is_flag=True, help="Include the diagnostic trail in the output")
@click.option("--screenshot", type=click.Path(dir_okay=False), default=None, help="Write a JPEG of the first loaded page here")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Write the JSON document to a file")
@click.option("--headless/--no-headless", default=None, help="Run browser in headless mode (defaults to browser.headless)")
@click.pass_context
def scrape(
    ctx,
    amazon_url: Optional[str],
    flipkart_url: Optional[str],
    debug: bool,
    screenshot: Optional[str],
    output: Optional[str],
    headless: Optional[bool],
):
    """Scrape one Amazon and/or Flipkart search page and print the listings."""
    config = ctx.obj["config"]
    trail = DiagnosticTrail(enabled=debug)

    try:
        request = build_request(
            amazon_url=amazon_url,
            flipkart_url=flipkart_url,
            debug=debug,
            debug_screenshot=bool(screenshot),
            config=config,
            trail=trail,
        )
    except InvalidRequestError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    logger.info("Starting scrape: targets={}, headless={}", request.targets, headless)
    try:
        result = run_scrape(request, config=config, trail=trail, headless=headless)
    except Exception as e:
        logger.exception("Scrape failed")
        click.echo(f"Scrape failed: {e}", err=True)
        sys.exit(1)

    document = result_to_document(result)
    if screenshot and result.screenshot:
        Path(screenshot).write_bytes(base64.b64decode(result.screenshot))
        document.pop("debug_screenshot", None)
        click.echo(f"Screenshot saved to {screenshot}", err=True)

    payload = json.dumps(document, ensure_ascii=False, indent=2)
    if output:
        Path(output).write_text(payload, encoding="utf-8")
        click.echo(f"{result.count} rows written to {output}", err=True)
    else:
        click.echo(payload)

    for platform, was_blocked in result.blocked.items():
        if was_blocked:
            click.echo(f"Warning: {platform} served a block page", err=True)


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, type=int, show_default=True)
@click.pass_context
def serve(ctx, host: str, port: int):
    """Serve the /scrape HTTP API."""
    import uvicorn

    if ctx.obj.get("config_path"):
        os.environ["MARKETLENS_CONFIG"] = str(Path(ctx.obj["config_path"]).resolve())
    uvicorn.run("marketlens.api:app", host=host, port=port)


if __name__ == "__main__":
    cli()
