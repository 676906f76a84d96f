"""
Command dispatcher.

Maps prefixed chat messages from allow-listed channels onto session
controller operations and catalog queries.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

from voicecast.bot.notifications import DiscordNotifier
from voicecast.bot.pagination import Paginator
from voicecast.media.catalog import VideoCatalog
from voicecast.streaming.controller import StreamSessionController
from voicecast.streaming.errors import VoicecastError
from voicecast.streaming.session import SessionPhase

logger = logging.getLogger(__name__)


def build_help_text(prefix: str) -> str:
    return "\n".join([
        "📽 **Available Commands**",
        "",
        "🎬 **Media**",
        f"`{prefix}play` - Play local video, either by name or number obtained from {prefix}list",
        f"`{prefix}playlink` - Play video from URL/YouTube, or search YouTube by title",
        f"`{prefix}stop` - Stop playback",
        "",
        "🛠️ **Utils**",
        f"`{prefix}list` - Show local videos, page scrolling stops after 2 minutes",
        f"`{prefix}refresh` - Rescan the videos folder and show the list",
        f"`{prefix}status` - Show status",
        f"`{prefix}help` - Show this help",
    ])


class CommandDispatcher:
    """
    Parses and routes control-channel commands.

    Usage:
        dispatcher = CommandDispatcher(controller, catalog, notifier, paginator,
                                       prefix="$", command_channel_ids=["123"])
        await dispatcher.handle(message, own_user_id=client.user.id)
    """

    def __init__(
        self,
        controller: StreamSessionController,
        catalog: VideoCatalog,
        notifier: DiscordNotifier,
        paginator: Paginator,
        prefix: str,
        command_channel_ids: Iterable[str],
    ):
        self.controller = controller
        self.catalog = catalog
        self.notifier = notifier
        self.paginator = paginator
        self.prefix = prefix
        self.command_channel_ids = {str(c) for c in command_channel_ids}
        self.help_text = build_help_text(prefix)

        self._commands: dict[str, Callable[[Any, list[str]], Awaitable[None]]] = {
            "play": self._play,
            "playlink": self._play_link,
            "stop": self._stop,
            "list": self._list,
            "refresh": self._refresh,
            "status": self._status,
            "help": self._help,
        }

    def accepts(self, message: Any, own_user_id: Optional[int]) -> bool:
        """Bots, self, foreign channels and non-commands are ignored."""
        if message.author.bot or message.author.id == own_user_id:
            return False
        if str(message.channel.id) not in self.command_channel_ids:
            return False
        return message.content.startswith(self.prefix)

    def parse(self, content: str) -> tuple[Optional[str], list[str]]:
        args = content[len(self.prefix):].split()
        if not args:
            return None, []
        return args[0].lower(), args[1:]

    async def handle(self, message: Any, own_user_id: Optional[int] = None) -> None:
        if not self.accepts(message, own_user_id):
            return

        command, args = self.parse(message.content)
        if command is None:
            return

        handler = self._commands.get(command)
        if handler is None:
            await self.notifier.error(message, "Invalid command")
            return

        logger.debug(f"Command {command} {args} from {message.author.id}")
        try:
            await handler(message, args)
        except VoicecastError as e:
            logger.info(f"Command {command} rejected: {e}")
            await self.notifier.error(message, str(e))

    # ============ Handlers ============

    async def _play(self, message: Any, args: list[str]) -> None:
        video_arg = "_".join(args)
        if not video_arg:
            await self.notifier.error(message, "Please provide a video name or number.")
            return
        await self.controller.play(video_arg, str(message.channel.id), origin=message)

    async def _play_link(self, message: Any, args: list[str]) -> None:
        link = " ".join(args)
        if not link:
            await self.notifier.error(message, "Please provide a link.")
            return
        await self.controller.play_link(link, str(message.channel.id), origin=message)

    async def _stop(self, message: Any, args: list[str]) -> None:
        await self.controller.stop()
        await self.notifier.success(message, "Stopped playback.")

    async def _list(self, message: Any, args: list[str]) -> None:
        lines = self.catalog.format_listing()
        if not lines:
            await self.notifier.error(message, "No videos found")
            return
        await self.paginator.send(message.channel, lines)

    async def _refresh(self, message: Any, args: list[str]) -> None:
        entries = await asyncio.to_thread(self.catalog.refresh)
        await self.notifier.success(message, f"Video list refreshed, {len(entries)} videos found.")
        await self._list(message, args)

    async def _status(self, message: Any, args: list[str]) -> None:
        status = self.controller.status()
        lines = [
            f"Phase: {status.phase.value}",
            f"Joined: {str(status.joined).lower()}",
            f"Playing: {str(status.playing).lower()}",
        ]
        if status.title and status.phase != SessionPhase.IDLE:
            lines.append(f"Title: {status.title.replace('_', ' ')}")
        await self.notifier.info(message, "Status", "\n".join(lines))

    async def _help(self, message: Any, args: list[str]) -> None:
        await self.notifier.help(message, self.help_text)
