"""
voicecast process entry point.

Loads configuration, wires the collaborators together and runs the
Discord client until a termination signal or an unhandled fault.
"""

import argparse
import asyncio
import logging
import signal
from typing import Any, Optional

from voicecast import __version__
from voicecast.bot.client import CrashNotifier, VoicecastClient
from voicecast.bot.commands import CommandDispatcher
from voicecast.bot.notifications import DiscordNotifier
from voicecast.bot.pagination import Paginator
from voicecast.bot.voice import DiscordVoiceTransport
from voicecast.config import VoicecastConfig, load_config
from voicecast.media.catalog import VideoCatalog
from voicecast.media.ffprobe import FFprobeAnalyzer
from voicecast.streaming.controller import StreamSessionController
from voicecast.streaming.pipeline import PlaybackPipeline
from voicecast.streaming.resolvers import (
    DirectLinkResolver,
    LocalCatalogResolver,
    VideoParams,
    YouTubeResolver,
    YouTubeSearchResolver,
)
from voicecast.streaming.session import SessionState
from voicecast.streaming.source_resolver import SourceResolver
from voicecast.utils.logging_setup import parse_size, setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="voicecast",
        description="Stream local videos and YouTube links into a Discord voice channel",
    )
    parser.add_argument(
        "--config",
        help="Path to config.yaml (defaults to ./config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        help="Override the configured log level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


def build_catalog(config: VoicecastConfig) -> VideoCatalog:
    catalog = VideoCatalog(config.library.videos_dir, config.library.extensions)
    entries = catalog.refresh()
    names = "\n".join(entry.name for entry in entries)
    logger.info(f"Available videos:\n{names}")
    return catalog


def build_resolver(config: VoicecastConfig, catalog: VideoCatalog) -> SourceResolver:
    default_params = VideoParams.from_config(config.stream)
    analyzer = FFprobeAnalyzer(
        ffprobe_path=config.ffmpeg.ffprobe_path,
        timeout=config.ffmpeg.probe_timeout,
    )
    youtube = YouTubeResolver(
        cookies_file=config.youtube.cookies_file or None,
        preferred_quality=config.youtube.preferred_quality,
        prefer_h264=config.youtube.prefer_h264,
    )
    return SourceResolver(
        catalog=LocalCatalogResolver(
            catalog,
            analyzer,
            default_params,
            respect_video_params=config.stream.respect_video_params,
        ),
        platform=youtube,
        search=YouTubeSearchResolver(youtube),
        direct=DirectLinkResolver(),
        is_platform_url=YouTubeResolver.is_platform_url,
    )


async def run(config: VoicecastConfig) -> None:
    """
    Run the bot until SIGINT/SIGTERM, an unhandled loop fault, or the
    client exiting on its own.
    """
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    faults: list[dict[str, Any]] = []

    catalog = build_catalog(config)
    resolver = build_resolver(config, catalog)

    client = VoicecastClient()
    notifier = DiscordNotifier(client)
    controller = StreamSessionController(
        state=SessionState(),
        resolver=resolver,
        transport=DiscordVoiceTransport(client),
        pipeline=PlaybackPipeline(
            ffmpeg_path=config.ffmpeg.path,
            log_level=config.ffmpeg.log_level,
            kill_timeout=config.ffmpeg.kill_timeout,
        ),
        notifier=notifier,
        guild_id=config.discord.guild_id,
        channel_id=config.discord.video_channel_id,
        default_params=VideoParams.from_config(config.stream),
    )
    dispatcher = CommandDispatcher(
        controller=controller,
        catalog=catalog,
        notifier=notifier,
        paginator=Paginator(client),
        prefix=config.discord.prefix,
        command_channel_ids=config.discord.command_channel_ids,
    )
    client.bind(controller, dispatcher, notifier)
    crash_notifier = CrashNotifier(client, config.discord.primary_command_channel_id)

    def on_signal(sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, shutting down")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, on_signal, sig)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            logger.debug(f"Signal handler for {sig.name} not supported")

    def on_loop_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        logger.error(f"Unhandled error: {context.get('message')}", exc_info=exc)
        faults.append(context)
        stop_event.set()

    loop.set_exception_handler(on_loop_exception)

    client_task = asyncio.create_task(client.start(config.discord.token), name="discord-client")
    stop_task = asyncio.create_task(stop_event.wait(), name="stop-event")

    try:
        await asyncio.wait({client_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

        if client_task.done() and not client_task.cancelled():
            error: Optional[BaseException] = client_task.exception()
            if error is not None:
                logger.error(f"Discord client stopped: {error}", exc_info=error)
                faults.append({"exception": error})

        if stop_event.is_set() or faults:
            await crash_notifier.notify()
    finally:
        stop_task.cancel()
        try:
            await controller.shutdown()
        except Exception as e:
            logger.error(f"Error during session shutdown: {e}")
        if not client.is_closed():
            await client.close()
        if not client_task.done():
            client_task.cancel()
            try:
                await client_task
            except asyncio.CancelledError:
                pass
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                pass

    logger.info("voicecast shutdown complete")


def main(argv: Optional[list[str]] = None) -> None:
    """
    Main entry point.

    Called when running `python -m voicecast` or via the `voicecast` script.
    """
    args = build_parser().parse_args(argv)
    config = load_config(args.config)

    setup_logging(
        log_level=args.log_level or config.logging.level,
        log_file_name=config.logging.file,
        log_to_console=True,
        log_to_file=bool(config.logging.file),
        max_bytes=parse_size(config.logging.max_size),
        backup_count=config.logging.backup_count,
        log_format=config.logging.format,
    )

    logger.info(f"Starting voicecast v{__version__}")

    if not config.discord.token:
        logger.error("No Discord token configured (discord.token or VOICECAST_TOKEN)")
        raise SystemExit(1)

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
