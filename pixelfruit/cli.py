#!/usr/bin/env python3
"""
PixelFruit Command Line Interface

Runs adjustment requests, histograms and color replacement on ordinary
8-bit images through the PixelFruit engine.
"""

import sys
import json
import asyncio
import click
import logging
import yaml
import numpy as np
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from PIL import Image
from tqdm import tqdm

from .config import load_config, get_config_value
from .errors import PixelFruitError
from .preview import PixelFruitEngine, EngineConfig, ProcessOptions


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def configure_logging(config: Dict[str, Any], verbose: bool = False, quiet: bool = False,
                      root: Optional[logging.Logger] = None):
    """Apply the configured log format, and level unless -v/-q chose one."""
    root = root or logging.getLogger()

    log_format = get_config_value(config, 'logging.format')
    if log_format:
        formatter = logging.Formatter(log_format)
        for handler in root.handlers:
            # Plain console handlers only, as installed by basicConfig
            if type(handler) is logging.StreamHandler:
                handler.setFormatter(formatter)

    if verbose:
        root.setLevel(logging.DEBUG)
    elif quiet:
        root.setLevel(logging.ERROR)
    else:
        level = get_config_value(config, 'logging.level', 'INFO')
        root.setLevel(str(level).upper())


def load_image(path: str) -> np.ndarray:
    """Read an image file as an (H, W, 4) uint8 RGBA array."""
    with Image.open(path) as image:
        return np.array(image.convert("RGBA"), dtype=np.uint8)


def save_image(pixels: np.ndarray, path: str):
    """Write an RGBA array, dropping alpha for formats without it."""
    image = Image.fromarray(np.ascontiguousarray(pixels))
    if Path(path).suffix.lower() in ('.jpg', '.jpeg', '.bmp'):
        image = image.convert("RGB")
    image.save(path)


def parse_assignments(assignments: Tuple[str, ...]) -> Dict[str, Any]:
    """Parse key=value pairs, typing values the way YAML would."""
    values = {}
    for item in assignments:
        if '=' not in item:
            raise click.BadParameter(f"Expected key=value, got '{item}'", param_hint='--set')
        key, raw = item.split('=', 1)
        values[key.strip()] = yaml.safe_load(raw)
    return values


def build_operations(engine: PixelFruitEngine, preset: Optional[str],
                     adjustments: Dict[str, Any], sharpen: float, denoise: float,
                     denoise_algorithm: str, skin: float) -> List[Dict[str, Any]]:
    """Combine a preset with explicit adjustments; explicit values win."""
    operations = engine.preset_operations(preset) if preset else []
    by_type = {op['type']: op for op in operations}

    if adjustments:
        color = by_type.setdefault('color_adjustments',
                                   {'type': 'color_adjustments', 'params': {}})
        color['params'].update(adjustments)
    if sharpen:
        by_type['sharpen'] = {'type': 'sharpen', 'params': {'amount': sharpen}}
    if denoise:
        by_type['denoise'] = {'type': 'denoise',
                              'params': {'strength': denoise, 'algorithm': denoise_algorithm}}
    if skin:
        params = dict(by_type.get('skin_brighten', {}).get('params', {}))
        params['strength'] = skin
        by_type['skin_brighten'] = {'type': 'skin_brighten', 'params': params}

    order = ['color_adjustments', 'sharpen', 'denoise', 'skin_brighten']
    return [by_type[kind] for kind in order if kind in by_type]


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True),
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-error output')
@click.pass_context
def main(ctx, config: Optional[str] = None, verbose: bool = False, quiet: bool = False):
    """
    PixelFruit - interactive image adjustment engine

    Apply tone, color, detail and color-range adjustments to images from
    the command line.
    """
    if ctx.obj is None:
        ctx.obj = {}

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif quiet:
        logging.getLogger().setLevel(logging.ERROR)

    ctx.obj['config'] = load_config(config)
    configure_logging(ctx.obj['config'], verbose=verbose, quiet=quiet)
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


def _engine(ctx) -> PixelFruitEngine:
    return PixelFruitEngine(EngineConfig.from_config(ctx.obj.get('config', {})))


def _fail(ctx, message: str, error: Exception):
    click.echo(f"❌ {message}: {error}", err=True)
    if ctx.obj.get('verbose'):
        import traceback
        traceback.print_exc()
    sys.exit(1)


@main.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@click.argument('output_path', type=click.Path(dir_okay=False))
@click.option('--preset', '-p', help='Apply a named preset first')
@click.option('--set', 'assignments', multiple=True, metavar='KEY=VALUE',
              help='Color adjustment, e.g. --set exposure=0.5 (repeatable)')
@click.option('--sharpen', type=float, default=0.0, help='Sharpening amount (0-100)')
@click.option('--denoise', type=float, default=0.0, help='Noise reduction strength (0-100)')
@click.option('--denoise-algorithm', type=click.Choice(['mean', 'median', 'gaussian']),
              default='mean', help='Noise reduction kernel')
@click.option('--skin', type=float, default=0.0, help='Skin brightening strength (0-100)')
@click.option('--progressive/--no-progressive', default=None,
              help='Render in progressive passes (default from config)')
@click.pass_context
def process(ctx, input_path: str, output_path: str, preset: Optional[str],
            assignments: Tuple[str, ...], sharpen: float, denoise: float,
            denoise_algorithm: str, skin: float, progressive: Optional[bool]):
    """
    Apply adjustments to an image.

    INPUT_PATH: Image to read
    OUTPUT_PATH: Where to write the adjusted image
    """
    quiet = ctx.obj.get('quiet', False)
    engine = _engine(ctx)

    try:
        pixels = load_image(input_path)
        operations = build_operations(engine, preset, parse_assignments(assignments),
                                      sharpen, denoise, denoise_algorithm, skin)
        if not quiet:
            click.echo(f"🎨 Processing {input_path} ({pixels.shape[1]}x{pixels.shape[0]}) "
                       f"with {len(operations)} operation(s)")

        with tqdm(total=100, desc="Rendering", unit="%", disable=quiet) as progress:
            def on_progress(percent: int, _buffer: np.ndarray):
                progress.update(percent - progress.n)

            async def run():
                return await engine.process(
                    pixels, operations=operations,
                    options=ProcessOptions(progressive=progressive, on_progress=on_progress))

            result = asyncio.run(run())
            progress.update(100 - progress.n)

        save_image(result, output_path)
        if not quiet:
            click.echo(f"✅ Saved {output_path}")
    except (PixelFruitError, ValueError, KeyError, OSError) as e:
        _fail(ctx, "Error processing image", e)
    finally:
        engine.shutdown()


@main.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--mode', type=click.Choice(['luminance', 'rgb']), default='luminance',
              help='Channels to summarize')
@click.option('--format', 'output_format', type=click.Choice(['summary', 'json']),
              default='summary', help='Output format')
@click.pass_context
def histogram(ctx, input_path: str, mode: str, output_format: str):
    """
    Show the histogram of an image.

    INPUT_PATH: Image to analyze
    """
    engine = _engine(ctx)
    try:
        hist = engine.histogram(load_image(input_path))
    except (PixelFruitError, OSError) as e:
        _fail(ctx, "Error computing histogram", e)
    finally:
        engine.shutdown()

    if output_format == 'json':
        data = hist.as_dict()
        if mode == 'luminance':
            data = {'luminance': data['luminance']}
        else:
            data.pop('luminance')
        click.echo(json.dumps(data))
        return

    channels = {'luminance': hist.luminance} if mode == 'luminance' else {
        'r': hist.r, 'g': hist.g, 'b': hist.b}
    click.echo(f"📊 Histogram ({mode}), peak bin count {hist.max_count(mode)}")
    for name, counts in channels.items():
        total = int(counts.sum())
        mean = float((np.arange(256) * counts).sum() / total) if total else 0.0
        click.echo(f"  {name:>9}: pixels={total} mean={mean:.1f} "
                   f"min={int(np.flatnonzero(counts)[0]) if total else 0} "
                   f"max={int(np.flatnonzero(counts)[-1]) if total else 0}")


@main.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@click.argument('output_path', type=click.Path(dir_okay=False))
@click.option('--start', required=True, help='Range start color (#RRGGBB)')
@click.option('--end', required=True, help='Range end color (#RRGGBB)')
@click.option('--target-start', required=True, help='Target start color (#RRGGBB)')
@click.option('--target-end', required=True, help='Target end color (#RRGGBB)')
@click.option('--tolerance', type=float, default=None, help='Match tolerance')
@click.option('--mix', type=float, default=None, help='Blend ratio (0.0-1.0)')
@click.pass_context
def replace(ctx, input_path: str, output_path: str, start: str, end: str,
            target_start: str, target_end: str, tolerance: Optional[float],
            mix: Optional[float]):
    """
    Replace a color range with a target range.

    INPUT_PATH: Image to read
    OUTPUT_PATH: Where to write the result
    """
    config = ctx.obj.get('config', {})
    quiet = ctx.obj.get('quiet', False)
    if tolerance is None:
        tolerance = get_config_value(config, 'replace.default_tolerance', 60)
    if mix is None:
        mix = get_config_value(config, 'replace.default_mix_ratio', 1.0)

    engine = _engine(ctx)
    try:
        pixels = load_image(input_path)
        matches = engine.find_in_range(pixels, None, None, start, end, tolerance)
        if not matches:
            click.echo("No colors found in the given range", err=True)
            sys.exit(2)

        result = engine.apply_replace(pixels, matches, start, end,
                                      target_start, target_end, mix)
        save_image(result.pixels, output_path)
        if not quiet:
            click.echo(f"✅ Replaced {result.changed_count} pixels across "
                       f"{len(matches)} colors, saved {output_path}")
    except (PixelFruitError, ValueError, OSError) as e:
        _fail(ctx, "Error replacing colors", e)
    finally:
        engine.shutdown()


@main.command()
@click.option('--details', is_flag=True, help='Show preset values')
@click.pass_context
def presets(ctx, details: bool):
    """List available adjustment presets."""
    engine = _engine(ctx)
    try:
        for name in engine.presets.list_presets():
            marker = "" if engine.presets.is_builtin(name) else " (custom)"
            click.echo(f"{name}{marker}")
            if details:
                for key, value in engine.presets.get(name).items():
                    click.echo(f"    {key}: {value}")
    finally:
        engine.shutdown()


@main.command()
def version():
    """Show PixelFruit version information."""
    from . import __version__
    click.echo(f"PixelFruit v{__version__}")
    click.echo("Interactive image adjustment engine")


if __name__ == '__main__':
    main()
