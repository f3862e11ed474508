"""CLI entry point for the lyric music video generator."""

import logging
from pathlib import Path
from typing import Optional

import typer

from . import __version__
from .config import config
from .editor import STYLES, CompositionOptions, TransitionType, get_audio_duration, get_style
from .exceptions import LyricMVError
from .models import ProjectStatus, StatusReport
from .pipeline import (
    Budget,
    ClassifyOptions,
    Collaborators,
    EventBus,
    EventKind,
    MVPipeline,
    PipelineEvent,
    ProjectRegistry,
    ProjectStore,
    VideoOptions,
)

app = typer.Typer(
    name="lyric-mv",
    help="AI-powered lyric music video generator",
    no_args_is_help=True
)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"lyric-mv version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    """Lyric Music Video Generator - turn a song and its lyrics into a music video."""
    pass


def _print_event(event: PipelineEvent) -> None:
    if event.kind == EventKind.STATUS:
        typer.echo(f"   → {event.status.value} ({event.progress}%)")
    elif event.kind == EventKind.ERROR:
        typer.echo(f"   ❌ {event.error}")


def _collaborators(
    storyboard: bool = False,
    images: bool = False,
    videos: bool = False,
) -> Collaborators:
    """Build the external generators a command needs."""
    collaborators = Collaborators()

    try:
        if storyboard:
            try:
                config.validate_required()
            except ValueError as e:
                typer.echo(f"⚠️  {e}, skipping storyboard generation")
            else:
                from .agents import StoryboardAgent
                collaborators.storyboarder = StoryboardAgent()
        if images:
            from .services import ImagenImageGenerator
            collaborators.image_generator = ImagenImageGenerator()
        if videos:
            from .services import VeoVideoGenerator
            config.validate_veo_required()
            collaborators.video_generator = VeoVideoGenerator()
    except ValueError as e:
        typer.echo(f"❌ Configuration error: {e}")
        raise typer.Exit(1)

    return collaborators


def build_pipeline(project_id: str, collaborators: Optional[Collaborators] = None) -> MVPipeline:
    """Open an existing project with the given generators attached."""
    store = ProjectStore()
    bus = EventBus()
    bus.subscribe(_print_event)
    registry = ProjectRegistry(
        store,
        lambda state: MVPipeline(state, store, collaborators, bus),
    )

    try:
        return registry.get(project_id)
    except LyricMVError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)


def _print_status(report: StatusReport) -> None:
    typer.echo(f"📁 Project: {report.id}")
    typer.echo(f"   Status: {report.status.value} ({report.progress}%)")
    if report.error:
        typer.echo(f"   Error: {report.error}")
    typer.echo(f"   Lyrics: {report.lyrics_count}")
    typer.echo(f"   Storyboard scenes: {report.storyboard_count}")

    if report.classification_stats:
        stats = report.classification_stats
        tiers = ", ".join(f"{name} {count}" for name, count in stats.by_render_type.items())
        typer.echo(f"   Segments: {stats.total} ({tiers})")
        typer.echo(
            f"   Estimated calls: {stats.estimated_cost.video_count} videos, "
            f"{stats.estimated_cost.image_count} images"
        )

    for label, gate in (("Images", report.image_confirmation), ("Videos", report.video_confirmation)):
        summary = gate.summary()
        if any(summary.values()):
            typer.echo(
                f"   {label}: {summary['confirmed']} confirmed, {summary['pending']} pending, "
                f"{summary['regenerating']} regenerating"
            )

    if report.output_path:
        typer.echo(f"   Output: {report.output_path} ({report.output_duration:.1f}s)")


def _run(action):
    """Run a pipeline call, turning domain errors into a clean exit."""
    try:
        return action()
    except LyricMVError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)


@app.command()
def new(
    lyrics: Path = typer.Argument(
        ...,
        help="LRC lyric file with line timestamps",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    audio: Path = typer.Argument(
        ...,
        help="Song audio file",
        exists=True,
        file_okay=True,
        dir_okay=False
    ),
    project_id: Optional[str] = typer.Option(
        None,
        "--id",
        help="Project id (generated if not given)"
    ),
    max_videos: int = typer.Option(
        config.max_videos,
        "--max-videos",
        help="Maximum number of AI video segments",
        min=0
    ),
    merge_short: bool = typer.Option(
        False,
        "--merge-short",
        help="Merge adjacent short segments"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Create a project and run it up to image confirmation.

    Parses the lyrics, generates the storyboard, classifies the segments and
    generates one image per segment.
    """
    setup_logging(verbose)
    typer.echo(f"🎬 New project from {lyrics.name} + {audio.name}")

    collaborators = _collaborators(storyboard=True, images=True)
    bus = EventBus()
    bus.subscribe(_print_event)

    pipeline = _run(lambda: MVPipeline.create(ProjectStore(), collaborators, bus, project_id))
    typer.echo(f"   Project id: {pipeline.project_id}")

    try:
        duration = get_audio_duration(audio)
    except Exception as e:
        typer.echo(f"❌ Cannot read audio: {e}")
        raise typer.Exit(1)

    options = ClassifyOptions(budget=Budget(max_videos=max_videos), merge_short=merge_short)
    report = _run(lambda: pipeline.run_until_image_confirmation(
        lrc_content=lyrics.read_text(encoding="utf-8"),
        audio_path=audio.resolve(),
        audio_duration=duration,
        classify_options=options,
    ))

    typer.echo("")
    _print_status(report)
    typer.echo(f"\n👀 Review the images in {pipeline.images_dir}, then run:")
    typer.echo(f"   lyric-mv confirm-images {pipeline.project_id} --all")


@app.command()
def status(
    project_id: str = typer.Argument(..., help="Project id"),
) -> None:
    """Show project status."""
    _print_status(build_pipeline(project_id).get_status())


@app.command()
def images(
    project_id: str = typer.Argument(..., help="Project id"),
) -> None:
    """List every segment image and its confirmation state."""
    pipeline = build_pipeline(project_id)
    icons = {"confirmed": "✅", "pending": "⏳", "regenerating": "🔄", "failed": "❌", "missing": "·"}

    for review in pipeline.get_images_for_confirmation():
        typer.echo(f"   {icons.get(review.state, '?')} [{review.index:03d}] {review.render_type.value:<9} {review.text}")
        if review.prompt:
            prompt_preview = review.prompt[:70] + "..." if len(review.prompt) > 70 else review.prompt
            typer.echo(f"      → {prompt_preview}")
        if review.error:
            typer.echo(f"      ! {review.error}")


@app.command("confirm-images")
def confirm_images(
    project_id: str = typer.Argument(..., help="Project id"),
    index: Optional[int] = typer.Argument(None, help="Segment index to confirm"),
    all_images: bool = typer.Option(False, "--all", "-a", help="Confirm every pending image"),
) -> None:
    """Confirm one image, or all pending images."""
    pipeline = build_pipeline(project_id)

    if all_images:
        _run(pipeline.confirm_all_images)
    elif index is not None:
        _run(lambda: pipeline.confirm_image(index))
    else:
        typer.echo("❌ Give a segment index or --all")
        raise typer.Exit(1)

    gate = pipeline.state.data.image_confirmation
    typer.echo(f"✅ {len(gate.confirmed)} confirmed, {len(gate.pending)} pending")
    if pipeline.is_all_images_confirmed():
        typer.echo(f"   Next: lyric-mv videos {project_id}")


@app.command("regenerate-image")
def regenerate_image(
    project_id: str = typer.Argument(..., help="Project id"),
    index: int = typer.Argument(..., help="Segment index"),
    prompt: Optional[str] = typer.Option(None, "--prompt", "-p", help="New prompt for the segment"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Regenerate one image. The new image must be confirmed again."""
    setup_logging(verbose)
    pipeline = build_pipeline(project_id, _collaborators(images=True))

    result = _run(lambda: pipeline.regenerate_image(index, prompt))
    if not result.success:
        typer.echo(f"❌ Regeneration failed: {result.error}")
        raise typer.Exit(1)
    typer.echo(f"✅ Image regenerated: {result.path}")


@app.command()
def videos(
    project_id: str = typer.Argument(..., help="Project id"),
    all_video: bool = typer.Option(
        True,
        "--all-video/--by-tier",
        help="Generate a video for every segment, or only for the VIDEO tier"
    ),
    parallel: int = typer.Option(
        config.video_concurrency,
        "--parallel",
        "-p",
        help="Maximum concurrent generations",
        min=1,
        max=10
    ),
    skip_existing: bool = typer.Option(
        True,
        "--skip-existing/--no-skip-existing",
        help="Reuse video files already on disk"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Generate the segment videos after every image is confirmed."""
    setup_logging(verbose)
    pipeline = build_pipeline(project_id, _collaborators(videos=True))

    options = VideoOptions(all_video=all_video, skip_existing=skip_existing, concurrency=parallel)
    typer.echo(f"⏳ Generating videos ({'all segments' if all_video else 'VIDEO tier only'})...")
    _run(lambda: pipeline.generate_videos(options))

    failed = [r for r in pipeline.state.data.video_results if not r.success]
    for result in failed:
        fallback = " (animated instead)" if result.fallback_animation else ""
        typer.echo(f"   ❌ [{result.index:03d}] {result.error}{fallback}")

    _print_status(pipeline.get_status())
    typer.echo(f"\n👀 Review the clips in {pipeline.videos_dir}, then run:")
    typer.echo(f"   lyric-mv confirm-videos {project_id} --all")


@app.command("confirm-videos")
def confirm_videos(
    project_id: str = typer.Argument(..., help="Project id"),
    index: Optional[int] = typer.Argument(None, help="Segment index to confirm"),
    all_videos: bool = typer.Option(False, "--all", "-a", help="Confirm every pending video"),
) -> None:
    """Confirm one video, or all pending videos."""
    pipeline = build_pipeline(project_id)

    if all_videos:
        _run(pipeline.confirm_all_videos)
    elif index is not None:
        _run(lambda: pipeline.confirm_video(index))
    else:
        typer.echo("❌ Give a segment index or --all")
        raise typer.Exit(1)

    gate = pipeline.state.data.video_confirmation
    typer.echo(f"✅ {len(gate.confirmed)} confirmed, {len(gate.pending)} pending")
    if pipeline.is_all_videos_confirmed():
        typer.echo(f"   Next: lyric-mv compose {project_id}")


@app.command("regenerate-video")
def regenerate_video(
    project_id: str = typer.Argument(..., help="Project id"),
    index: int = typer.Argument(..., help="Segment index"),
    prompt: Optional[str] = typer.Option(None, "--prompt", "-p", help="New prompt for the segment"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Regenerate one video. The new clip must be confirmed again."""
    setup_logging(verbose)
    pipeline = build_pipeline(project_id, _collaborators(videos=True))

    result = _run(lambda: pipeline.regenerate_video(index, prompt))
    if not result.success:
        typer.echo(f"❌ Regeneration failed: {result.error}")
        raise typer.Exit(1)
    typer.echo(f"✅ Video regenerated: {result.path}")


@app.command()
def animate(
    project_id: str = typer.Argument(..., help="Project id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Animate the stills of segments without an AI video."""
    setup_logging(verbose)
    pipeline = build_pipeline(project_id, Collaborators())
    _run(pipeline.animate_images)

    results = pipeline.state.data.animation_results
    typer.echo(f"✅ Animated {sum(1 for r in results if r.success)}/{len(results)} images")


@app.command()
def compose(
    project_id: str = typer.Argument(..., help="Project id"),
    audio: Optional[Path] = typer.Option(
        None,
        "--audio",
        help="Song audio file (defaults to the project's)"
    ),
    transition: TransitionType = typer.Option(
        TransitionType.NONE,
        "--transition",
        "-t",
        help="Transition between clips"
    ),
    transition_duration: float = typer.Option(
        config.transition_duration,
        "--transition-duration",
        help="Transition length in seconds"
    ),
    subtitle_style: str = typer.Option(
        "default",
        "--subtitle-style",
        "-s",
        help=f"Subtitle style ({', '.join(STYLES)})"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Compose the final video after every clip is confirmed."""
    setup_logging(verbose)
    pipeline = build_pipeline(project_id, Collaborators())

    try:
        style = get_style(subtitle_style)
    except ValueError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    options = CompositionOptions(
        transition=transition,
        transition_duration=transition_duration,
        subtitle_style=style,
    )

    if pipeline.state.status != ProjectStatus.ANIMATING_IMAGES:
        typer.echo("🖼️  Animating stills...")
        _run(pipeline.animate_images)

    typer.echo("📼 Composing music video...")
    _run(lambda: pipeline.compose_mv(audio, options))
    report = pipeline.get_status()

    missing = pipeline.state.data.missing_segments
    if missing:
        typer.echo(f"⚠️  Segments without a clip: {missing}")
    typer.echo(f"✅ Video composed: {report.output_path} ({report.output_duration:.1f}s)")


if __name__ == "__main__":
    app()
