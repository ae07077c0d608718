"""CLI entry point for media extras."""

from pathlib import Path

import click
from loguru import logger

from .concurrency import LockError, acquire_global_lock
from .config import ExtrasConfig
from .errors import ExtrasError
from .models import CoverType, MediaCover
from .runner import ExtrasRunner

log = logger.bind(stage="cli")


def _find_config_file() -> Path | None:
    """Look for .env next to the package or in cwd."""
    pkg_dir = Path(__file__).resolve().parent
    for candidate in [
        pkg_dir.parent.parent / ".env",  # dev: src/../.env
        Path.cwd() / ".env",
    ]:
        if candidate.is_file():
            return candidate
    return None


def _parse_season_cover(value: str, cover_type: CoverType) -> MediaCover:
    season, sep, url = value.partition("=")
    if not sep or not season.strip().isdigit():
        raise click.BadParameter(f"expected SEASON=URL, got {value!r}")
    return MediaCover(cover_type, url.strip(), grouping_key=int(season))


def _runner(ctx: click.Context) -> ExtrasRunner:
    return ctx.obj["runner"]


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("--no-lock", is_flag=True, help="Skip file locking.")
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True),
    default=None,
    help="Path to .env file.",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, no_lock: bool, config_file: str | None) -> None:
    """Keep show metadata files and artwork in sync with the library."""
    env_file = Path(config_file) if config_file else _find_config_file()

    # Process environment wins over the file; None disables .env loading
    config_kwargs: dict[str, bool | str | Path | None] = {
        "verbose": verbose,
        "_env_file": env_file,
    }
    if verbose:
        config_kwargs["log_level"] = "DEBUG"

    config = ExtrasConfig(**config_kwargs)  # type: ignore[arg-type]
    config.setup_logging()
    config.ensure_dirs()
    if env_file is not None:
        log.debug(f"Loaded env from {env_file}")

    try:
        lock = acquire_global_lock(config.lock_dir, skip=no_lock)
    except LockError as e:
        raise click.ClickException(str(e))

    runner = ExtrasRunner(config)
    ctx.obj = {"config": config, "runner": runner, "lock": lock}
    ctx.call_on_close(runner.close)
    if lock is not None:
        ctx.call_on_close(lock.close)


@main.command()
@click.argument("show_dirs", nargs=-1, required=True, type=click.Path(exists=True, file_okay=False))
@click.option("--title", default=None, help="Show title (single show only).")
@click.option("--poster", default=None, help="Poster image URL or local path.")
@click.option("--banner", default=None, help="Banner image URL or local path.")
@click.option("--fanart", default=None, help="Fanart image URL or local path.")
@click.option(
    "--season-poster",
    multiple=True,
    help="Season poster as SEASON=URL. Can be repeated.",
)
@click.option(
    "--monitored/--unmonitored",
    default=None,
    help="Mark the show(s) monitored or not. Unmonitored shows get no show or season files.",
)
@click.pass_context
def sync(
    ctx: click.Context,
    show_dirs: tuple[str, ...],
    title: str | None,
    poster: str | None,
    banner: str | None,
    fanart: str | None,
    season_poster: tuple[str, ...],
    monitored: bool | None,
) -> None:
    """Write and reconcile extra files for one or more show folders."""
    runner = _runner(ctx)
    paths = [Path(d).resolve() for d in show_dirs]

    images: list[MediaCover] = []
    for cover_type, source in (
        (CoverType.POSTER, poster),
        (CoverType.BANNER, banner),
        (CoverType.FANART, fanart),
    ):
        if source:
            images.append(MediaCover(cover_type, source))
    images.extend(_parse_season_cover(v, CoverType.POSTER) for v in season_poster)

    if len(paths) == 1:
        result = runner.sync(paths[0], title=title, images=tuple(images), monitored=monitored)
    else:
        if title or images:
            raise click.UsageError("--title and image options need a single show folder.")
        result = runner.sync_many(paths, monitored=monitored)

    click.echo(
        f"Synced {len(result.items)} show(s): {result.written} extra files written, "
        f"{result.discovered} discovered, {result.failed} failed"
    )


@main.command("import")
@click.argument("show_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("media_file")
@click.option("--new-show-folder", is_flag=True, help="The import created the show folder.")
@click.option("--new-season-folder", is_flag=True, help="The import created the season folder.")
@click.pass_context
def import_(
    ctx: click.Context,
    show_dir: str,
    media_file: str,
    new_show_folder: bool,
    new_season_folder: bool,
) -> None:
    """Write extra files for a newly imported MEDIA_FILE (relative to SHOW_DIR)."""
    try:
        records = _runner(ctx).import_file(
            Path(show_dir).resolve(),
            Path(media_file).as_posix(),
            item_folder_created=new_show_folder,
            grouping_folder_created=new_season_folder,
        )
    except ExtrasError as e:
        raise click.ClickException(str(e))
    for record in records:
        click.echo(f"  {record.kind:<20} {record.relative_path}")


@main.command()
@click.argument("show_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("old_path")
@click.argument("new_path")
@click.pass_context
def relocate(ctx: click.Context, show_dir: str, old_path: str, new_path: str) -> None:
    """Move extra files after a media file was renamed from OLD_PATH to NEW_PATH."""
    try:
        moved = _runner(ctx).relocate(
            Path(show_dir).resolve(),
            Path(old_path).as_posix(),
            Path(new_path).as_posix(),
        )
    except ExtrasError as e:
        raise click.ClickException(str(e))
    click.echo(f"Moved {len(moved)} extra file(s)")
    for record in moved:
        click.echo(f"  -> {record.relative_path}")


@main.command()
@click.argument("show_dir", type=click.Path(exists=True, file_okay=False))
@click.pass_context
def discover(ctx: click.Context, show_dir: str) -> None:
    """List existing files in SHOW_DIR that consumers recognize (no changes)."""
    records = _runner(ctx).discover(Path(show_dir).resolve())
    if not records:
        click.echo("No existing extra files recognized")
        return
    for record in records:
        click.echo(f"  {record.consumer:<8} {record.kind:<20} {record.relative_path}")


@main.command()
@click.pass_context
def housekeep(ctx: click.Context) -> None:
    """Delete invalid cached images so they are downloaded again."""
    removed = _runner(ctx).housekeep()
    click.echo(f"Removed {removed} invalid image(s)")
