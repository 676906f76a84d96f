"""
Notification and presence sink for Discord.

Every reply pairs an acknowledgement reaction with a message; the two
calls are issued concurrently.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

import discord

from voicecast.media.catalog import imdb_url_for
from voicecast.streaming.controller import SessionNotifier
from voicecast.streaming.resolvers.base import ResolvedSource

logger = logging.getLogger(__name__)

EMOJI_PLAYING = "▶️"
EMOJI_FINISHED = "⏹️"
EMOJI_SUCCESS = "✅"
EMOJI_ERROR = "❌"
EMOJI_INFO = "ℹ️"
EMOJI_LIST = "📋"
EMOJI_WATCHING = "📽"

IDLE_STATUS = "Lurking Around!"


def display_title(title: str) -> str:
    return title.replace("_", " ")


def format_end_time(end_time: Optional[datetime]) -> str:
    """Discord timestamp markup (absolute and relative) or "Unknown"."""
    if end_time is None:
        return "Unknown"
    ts = int(end_time.timestamp())
    return f"<t:{ts}:t>, <t:{ts}:R>"


def format_playing(source: ResolvedSource, end_time: Optional[datetime]) -> str:
    title = display_title(source.title)
    imdb_url = imdb_url_for(str(source.path)) if source.path else None
    if imdb_url:
        title = f"[{title}]({imdb_url})"
    return (
        f"{EMOJI_WATCHING} **Now Playing**: {title}\n"
        f"**Expected end time**: {format_end_time(end_time)}"
    )


def format_finished() -> str:
    return f"{EMOJI_FINISHED} **Finished**: Finished playing video."


def format_error(reason: str) -> str:
    return f"{EMOJI_ERROR} **Error**: {reason}"


def format_success(description: str) -> str:
    return f"{EMOJI_SUCCESS} **Success**: {description}"


def format_info(title: str, body: str) -> str:
    return f"{EMOJI_INFO} **{title}**: {body}"


def watching_status(title: str) -> str:
    return f"Playing {display_title(title)}..."


class DiscordNotifier(SessionNotifier):
    """Renders session events and command replies into Discord."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def _react_and_send(self, message: Any, emoji: str, content: str, reply: bool) -> None:
        send = message.reply(content) if reply else message.channel.send(content)
        await asyncio.gather(message.add_reaction(emoji), send)

    # ============ Session events ============

    async def playing(
        self, origin: Any, source: ResolvedSource, end_time: Optional[datetime]
    ) -> None:
        content = format_playing(source, end_time)
        if origin is None:
            logger.info(content)
            return
        await self._react_and_send(origin, EMOJI_PLAYING, content, reply=True)

    async def finished(self, command_channel_id: Optional[str]) -> None:
        if not command_channel_id:
            return
        channel = self.client.get_channel(int(command_channel_id))
        if channel is None:
            logger.warning(f"Command channel {command_channel_id} not in cache")
            return
        await channel.send(format_finished())

    async def set_idle(self) -> None:
        await self.client.change_presence(
            activity=discord.CustomActivity(name=IDLE_STATUS, emoji=EMOJI_FINISHED)
        )

    async def set_watching(self, title: str) -> None:
        await self.client.change_presence(
            activity=discord.CustomActivity(name=watching_status(title), emoji=EMOJI_WATCHING)
        )

    # ============ Command replies ============

    async def error(self, message: Any, reason: str) -> None:
        await self._react_and_send(message, EMOJI_ERROR, format_error(reason), reply=True)

    async def success(self, message: Any, description: str) -> None:
        await self._react_and_send(message, EMOJI_SUCCESS, format_success(description), reply=False)

    async def info(self, message: Any, title: str, body: str) -> None:
        await self._react_and_send(message, EMOJI_INFO, format_info(title, body), reply=False)

    async def help(self, message: Any, text: str) -> None:
        await self._react_and_send(message, EMOJI_LIST, text, reply=True)
