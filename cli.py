#!/usr/bin/env python3
"""
CLI for Image Selector

A command-line interface for headless selection, automated testing, and scripting.

Usage:
    python cli.py weighers
    python cli.py trace photo.png --start 10,10 --end 120,40 --weigher luminance
    python cli.py select photo.png -p 10,10 -p 120,12 -p 60,90 --strategy gray --output cutout.png

For help on any command:
    python cli.py <command> --help
"""

import sys
from pathlib import Path

import click

from selector.config import SUPPORTED_OUTPUT_FORMATS, load_config
from selector.error_handling import SelectorError
from selector.image_io import load_image
from selector.logger import AppLogger
from selector.models import Point
from selector.pathfinder import PathSearchEngine
from selector.selection_model import SelectionModel
from selector.strategies import available_strategies
from selector.weighers import WeigherRegistry, get_weigher


def _setup_runtime(verbose: bool = False, config_path=None):
    """Initialize shared runtime components."""
    config = load_config(config_path, log_level="DEBUG" if verbose else None)
    logger = AppLogger(config, log_to_file=True, log_to_console=verbose)
    return config, logger


def _parse_point(ctx, param, value):
    """Click callback turning 'X,Y' strings into Points."""
    if value is None:
        return None
    if isinstance(value, tuple):
        return tuple(_parse_point(ctx, param, v) for v in value)
    try:
        x, y = (int(part) for part in value.split(","))
    except ValueError:
        raise click.BadParameter(f"expected X,Y integers, got '{value}'")
    return Point(x, y)


def _fail(message: str):
    click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version="1.0.0", prog_name="Image Selector CLI")
def cli():
    """Image Selector - polygon and intelligent-scissors selection from the command line."""
    pass


@cli.command()
def weighers():
    """List the intelligent-scissors cost variants."""
    for cfg in WeigherRegistry.list_all():
        aliases = f" (aliases: {', '.join(cfg.aliases)})" if cfg.aliases else ""
        click.echo(f"{cfg.name:<10} {cfg.display_name}{aliases}")
        if cfg.description:
            click.echo(f"           {cfg.description}")


@cli.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.option("--start", "-s", required=True, callback=_parse_point, help="Seed pixel as X,Y.")
@click.option("--end", "-e", required=True, callback=_parse_point, help="Target pixel as X,Y.")
@click.option("--weigher", "-w", default="gray", show_default=True, help="Cost variant name or alias.")
@click.option("--radius", "-r", type=int, default=None, help="Search window half-size (defaults to config).")
@click.option("--unbounded", is_flag=True, help="Search the whole image.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="JSON config file.")
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
def trace(image, start, end, weigher, radius, unbounded, config_path, verbose):
    """
    Find the cheapest edge-following route between two pixels.

    Prints the number of pixels on the route and its cumulative cost.
    """
    config, logger = _setup_runtime(verbose, config_path)
    try:
        field = get_weigher(weigher).cost_field(load_image(image))
        engine = PathSearchEngine(config, logger)
        window = None if unbounded else (radius if radius is not None else config.search_window_radius)
        paths = engine.search(start, field, window_radius=window)
        route = paths.trace(end)
    except (SelectorError, ValueError) as e:
        _fail(str(e))
    finally:
        logger.close()

    click.secho(f"✓ Route {tuple(start)} -> {tuple(end)} using '{field.weigher.name}'", fg="green")
    click.echo(f"   Pixels: {route.size}")
    click.echo(f"   Cost:   {paths.cost_to(end)}")
    click.echo(f"   Settled: {paths.settled_count}")


@cli.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.option("--point", "-p", "points", multiple=True, required=True, callback=_parse_point,
              help="Boundary vertex as X,Y; repeat for each vertex.")
@click.option("--strategy", "-s", default=None, help=f"One of: {', '.join(available_strategies())} (defaults to config).")
@click.option("--output", "-o", required=True, type=click.Path(dir_okay=False), help="File for the cropped selection.")
@click.option("--format", "-f", "fmt", default=None, type=click.Choice(SUPPORTED_OUTPUT_FORMATS, case_sensitive=False),
              help="Output format (defaults to config).")
@click.option("--timeout", default=60.0, show_default=True, type=float, help="Seconds to wait for each path search.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="JSON config file.")
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
def select(image, points, strategy, output, fmt, timeout, config_path, verbose):
    """
    Build a closed selection through the given vertices and save the cutout.

    Vertices are joined in order and the polygon is closed back to the first one.
    """
    if len(points) < 2:
        _fail("A selection needs at least two points.")

    config, logger = _setup_runtime(verbose, config_path)
    try:
        with SelectionModel(config, logger, strategy=strategy, image=load_image(image)) as model:
            if verbose:
                model.subscribe("progress", lambda e: click.echo(f"  {e.stage}: {e.percent}% (ETA {e.eta_formatted})"))
            for p in points:
                model.add_point(p)
                if not model.wait_for_search(timeout):
                    _fail(f"Path search from {tuple(p)} did not finish within {timeout}s")
            model.finish_selection()
            model.save_selection(Path(output), format=fmt.upper() if fmt else None)
            n_segments = len(model.segments)
            bounds = model.selection_bounds()
    except (SelectorError, ValueError) as e:
        _fail(str(e))
    finally:
        logger.close()

    click.secho(f"✓ Selection saved to {output}", fg="green")
    click.echo(f"   Strategy: {model.strategy.name}")
    click.echo(f"   Segments: {n_segments}")
    click.echo(f"   Bounds:   {bounds}")


if __name__ == "__main__":
    cli()
