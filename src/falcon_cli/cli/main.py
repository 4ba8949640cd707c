"""One-shot command line interface.

``falcon "a red fox"`` generates, ``falcon -e photo.png "make it snow"``
edits, and the action flags (``--last``, ``--vary``, ``--up``, ``--rmbg``)
work on the most recent generation. Each invocation runs one operation,
prints a short summary and exits: 0 on success, 1 on any falcon error.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from falcon_cli import __version__
from falcon_cli.api.gateway import FalGateway, resolve_api_key
from falcon_cli.core.config import settings
from falcon_cli.core.errors import FalconError, ValidationError
from falcon_cli.core.images import generate_filename, open_image
from falcon_cli.core.logging import setup_logging
from falcon_cli.core.models import FalconConfig, History
from falcon_cli.core.operations import (
    OperationResult,
    SourceImage,
    require_last_generation,
    run_generate,
    run_remove_background,
    run_upscale,
    run_variations,
)
from falcon_cli.core.presets import apply_preset, select_preset
from falcon_cli.core.registry import (
    ASPECT_RATIOS,
    MODELS,
    RESOLUTIONS,
    UPSCALE_FACTORS,
    estimate_cost,
    model_display_name,
)
from falcon_cli.core.store import Store

from .validation import (
    clamp_num_images,
    parse_int_option,
    validate_action_flags,
    validate_aspect,
    validate_generation_model,
    validate_image_path,
    validate_output_path,
    validate_resolution,
)

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="falcon",
    help="Generate, edit and post-process images with fal.ai models",
    add_completion=False,
)

PROMPT_PREVIEW = 80


def get_store() -> Store:
    """Store for the current environment settings."""
    return Store.from_settings(settings)


def create_gateway(config: FalconConfig) -> FalGateway:
    """Gateway for one CLI invocation."""
    return FalGateway(api_key=settings.fal_key, config=config, base_url=settings.base_url)


def _preview(text: str, limit: int = PROMPT_PREVIEW) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"falcon {__version__}")
        raise typer.Exit()


# -- Output -----------------------------------------------------------------


def show_last_generation(store: Store) -> None:
    """Print the most recent generation."""
    last = store.get_last_generation()
    if last is None:
        console.print("[yellow]No previous generations found[/yellow]")
        return

    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Prompt", f"[cyan]{escape(_preview(last.prompt, 60))}[/cyan]")
    table.add_row("Model", f"[green]{model_display_name(last.model)}[/green]")
    table.add_row("Aspect", f"{last.aspect} | Resolution: {last.resolution}")
    table.add_row("Output", f"[dim]{last.output}[/dim]")
    table.add_row("Cost", f"[yellow]${last.cost:.3f}[/yellow]")
    table.add_row("Time", last.timestamp)

    console.print("\n[bold]Last Generation:[/bold]")
    console.print(table)


def print_result(result: OperationResult) -> None:
    """Print saved paths and the running cost totals."""
    for saved in result.images:
        console.print(
            f"[green]✓ Saved: {saved.path}[/green] "
            f"[dim]({saved.dimensions_label}, {saved.size})[/dim]"
        )
    print_totals(result.history)


def print_totals(history: History | None) -> None:
    if history is None:
        return
    totals = history.total_cost
    console.print(f"\n[dim]Session: ${totals.session:.2f} | Today: ${totals.today:.2f}[/dim]")


async def _maybe_open(result: OperationResult, config: FalconConfig, open_result: bool) -> None:
    if result.first is not None and config.open_after_generate and open_result:
        await open_image(result.first.path)


# -- Actions ----------------------------------------------------------------


async def generate_action(
    store: Store,
    config: FalconConfig,
    prompt: str,
    *,
    model: str,
    aspect: str,
    resolution: str,
    num_images: int,
    output: Optional[str],
    edit: Optional[str],
    transparent: bool,
    open_result: bool,
) -> OperationResult:
    """Validate inputs, then generate or edit."""
    validate_generation_model(model)
    validate_aspect(aspect)
    validate_resolution(resolution)
    output_path = validate_output_path(output) if output else Path(generate_filename())
    edit_path = validate_image_path(edit) if edit else None

    model_config = MODELS[model]
    console.print(f"\n[bold]Model: {model_config.name}[/bold]")
    if model_config.supports_aspect:
        shown_resolution = resolution if model_config.supports_resolution else "N/A"
        console.print(f"Aspect: {aspect} | Resolution: {shown_resolution}")
    console.print(f"Prompt: [dim]{escape(_preview(prompt))}[/dim]")
    console.print(
        f"Est. cost: [yellow]${estimate_cost(model, resolution, num_images):.3f}[/yellow]"
    )
    if edit_path is not None:
        console.print(f"Editing: [dim]{edit_path}[/dim]")

    async with create_gateway(config) as gateway:
        with console.status("Generating..."):
            result = await run_generate(
                gateway,
                store,
                prompt=prompt,
                model=model,
                aspect=aspect,
                resolution=resolution,
                num_images=num_images,
                output_path=output_path,
                edit_source=edit_path,
                transparent=transparent,
                kind="edit" if edit_path else "generate",
            )

    print_result(result)
    await _maybe_open(result, config, open_result)
    return result


async def variations_action(
    store: Store,
    config: FalconConfig,
    prompt: Optional[str],
    *,
    model: Optional[str],
    aspect: Optional[str],
    resolution: Optional[str],
    num: Optional[int],
    output: Optional[str],
    open_result: bool,
) -> OperationResult:
    """Generate variations of the last generation."""
    last = require_last_generation(store, "No previous generation to create variations of")

    model = model or last.model
    aspect = aspect or last.aspect
    resolution = resolution or last.resolution
    validate_generation_model(model)
    validate_aspect(aspect)
    validate_resolution(resolution)
    num_images = clamp_num_images(num if num is not None else 4)
    output_path = validate_output_path(output) if output else None

    console.print("\n[bold]Generating variations...[/bold]")
    console.print(f"Base: [dim]{escape(_preview(last.prompt, 50))}[/dim]")

    async with create_gateway(config) as gateway:
        with console.status("Generating variations..."):
            result = await run_variations(
                gateway,
                store,
                last,
                prompt=prompt,
                model=model,
                aspect=aspect,
                resolution=resolution,
                num_images=num_images,
                output_path=output_path,
            )

    print_result(result)
    await _maybe_open(result, config, open_result)
    return result


async def upscale_action(
    store: Store,
    config: FalconConfig,
    image_path: Optional[str],
    *,
    scale: int,
    output: Optional[str],
    open_result: bool,
) -> OperationResult:
    """Upscale the given image, or the last generation."""
    if scale not in UPSCALE_FACTORS:
        raise ValidationError(
            f"Invalid scale: {scale}. Valid: {', '.join(str(f) for f in UPSCALE_FACTORS)}"
        )

    if image_path:
        source = SourceImage(path=validate_image_path(image_path))
    else:
        last = require_last_generation(store, "No previous generation to upscale")
        source = SourceImage.from_generation(last)
    output_path = validate_output_path(output) if output else None

    console.print("\n[bold]Upscaling...[/bold]")
    console.print(f"Source: [dim]{source.path}[/dim]")
    console.print(f"Scale: {scale}x | Model: {config.upscaler}")

    async with create_gateway(config) as gateway:
        with console.status("Upscaling..."):
            result = await run_upscale(
                gateway,
                store,
                source,
                model=config.upscaler,
                scale=scale,
                output_path=output_path,
            )

    print_result(result)
    await _maybe_open(result, config, open_result)
    return result


async def remove_background_action(
    store: Store,
    config: FalconConfig,
    *,
    output: Optional[str],
    open_result: bool,
) -> OperationResult:
    """Remove the background of the last generation."""
    last = require_last_generation(store, "No previous generation to remove background from")
    source = SourceImage.from_generation(last)
    output_path = validate_output_path(output) if output else None

    console.print("\n[bold]Removing background...[/bold]")
    console.print(f"Source: [dim]{source.path}[/dim]")
    console.print(f"Model: {config.background_remover}")

    async with create_gateway(config) as gateway:
        with console.status("Processing..."):
            result = await run_remove_background(
                gateway,
                store,
                source,
                model=config.background_remover,
                output_path=output_path,
            )

    print_result(result)
    await _maybe_open(result, config, open_result)
    return result


# -- Command ----------------------------------------------------------------


@app.command()
def falcon(
    ctx: typer.Context,
    prompt: Annotated[
        Optional[str],
        typer.Argument(help="Prompt, or the image path for --up", show_default=False),
    ] = None,
    model: Annotated[
        Optional[str], typer.Option("--model", "-m", help="Model: gpt, banana, gemini, gemini3")
    ] = None,
    edit: Annotated[
        Optional[str], typer.Option("--edit", "-e", help="Edit an existing image")
    ] = None,
    aspect: Annotated[
        Optional[str],
        typer.Option("--aspect", "-a", help=f"Aspect ratio ({', '.join(ASPECT_RATIOS)})"),
    ] = None,
    resolution: Annotated[
        Optional[str],
        typer.Option("--resolution", "-r", help=f"Resolution ({', '.join(RESOLUTIONS)})"),
    ] = None,
    output: Annotated[
        Optional[str], typer.Option("--output", "-o", help="Output filename")
    ] = None,
    num: Annotated[
        Optional[str], typer.Option("--num", "-n", help="Number of images 1-4")
    ] = None,
    cover: Annotated[bool, typer.Option("--cover", help="Kindle/eBook cover: 2:3, 2K")] = False,
    square: Annotated[bool, typer.Option("--square", help="Square: 1:1")] = False,
    landscape: Annotated[bool, typer.Option("--landscape", help="Landscape: 16:9")] = False,
    portrait: Annotated[bool, typer.Option("--portrait", help="Portrait: 2:3")] = False,
    story: Annotated[bool, typer.Option("--story", help="Instagram/TikTok Story: 9:16")] = False,
    reel: Annotated[bool, typer.Option("--reel", help="Instagram Reel: 9:16")] = False,
    feed: Annotated[bool, typer.Option("--feed", help="Instagram Feed portrait: 4:5")] = False,
    og: Annotated[bool, typer.Option("--og", help="Open Graph / social share: 16:9")] = False,
    wallpaper: Annotated[bool, typer.Option("--wallpaper", help="iPhone wallpaper: 9:16, 2K")] = False,
    wide: Annotated[bool, typer.Option("--wide", help="Cinematic wide: 21:9")] = False,
    ultra: Annotated[bool, typer.Option("--ultra", help="Ultra-wide banner: 21:9, 2K")] = False,
    transparent: Annotated[
        bool, typer.Option("--transparent", help="Transparent background (GPT model only)")
    ] = False,
    last: Annotated[bool, typer.Option("--last", help="Show last generation info")] = False,
    vary: Annotated[bool, typer.Option("--vary", help="Generate variations of last image")] = False,
    up: Annotated[
        bool, typer.Option("--up", help="Upscale image (provide path, or uses last)")
    ] = False,
    rmbg: Annotated[bool, typer.Option("--rmbg", help="Remove background from last image")] = False,
    scale: Annotated[str, typer.Option("--scale", help="Upscale factor: 2, 4, 6, 8")] = "2",
    open_result: Annotated[
        bool, typer.Option("--open/--no-open", help="Open image after generation")
    ] = True,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version"),
    ] = None,
):
    """Generate images with fal.ai. Run without arguments for the interactive wizard."""
    setup_logging("DEBUG" if verbose else settings.log_level)

    try:
        action = validate_action_flags(last=last, vary=vary, up=up, rmbg=rmbg)
        num_value = parse_int_option(num, "--num")
        scale_value = parse_int_option(scale, "--scale")
        store = get_store()
        config = store.load_config()

        # --last needs no API key
        if action == "last":
            show_last_generation(store)
            return

        if not (prompt or action or edit):
            typer.echo(ctx.get_help())
            return

        resolve_api_key(settings.fal_key, config)

        if action == "vary":
            asyncio.run(
                variations_action(
                    store,
                    config,
                    prompt,
                    model=model,
                    aspect=aspect,
                    resolution=resolution,
                    num=num_value,
                    output=output,
                    open_result=open_result,
                )
            )
        elif action == "up":
            asyncio.run(
                upscale_action(
                    store,
                    config,
                    prompt,
                    scale=scale_value,
                    output=output,
                    open_result=open_result,
                )
            )
        elif action == "rmbg":
            asyncio.run(
                remove_background_action(store, config, output=output, open_result=open_result)
            )
        else:
            if not prompt:
                raise ValidationError("A prompt is required")

            flags = {
                "cover": cover,
                "square": square,
                "landscape": landscape,
                "portrait": portrait,
                "story": story,
                "reel": reel,
                "feed": feed,
                "og": og,
                "wallpaper": wallpaper,
                "wide": wide,
                "ultra": ultra,
            }
            preset = select_preset([name for name, enabled in flags.items() if enabled])
            final_aspect, final_resolution = apply_preset(
                preset,
                aspect or config.default_aspect,
                resolution or config.default_resolution,
            )

            asyncio.run(
                generate_action(
                    store,
                    config,
                    prompt,
                    model=model or config.default_model,
                    aspect=final_aspect,
                    resolution=final_resolution,
                    num_images=clamp_num_images(num_value if num_value is not None else 1),
                    output=output,
                    edit=edit,
                    transparent=transparent,
                    open_result=open_result,
                )
            )
    except FalconError as e:
        logger.debug(f"Command failed: {e}", exc_info=True)
        err_console.print(str(e), style="red", markup=False, highlight=False)
        raise typer.Exit(code=1) from None
    except Exception as e:
        logger.debug(f"Unexpected error: {e}", exc_info=True)
        err_console.print(f"Unexpected error: {e}", style="red", markup=False, highlight=False)
        raise typer.Exit(code=1) from None


