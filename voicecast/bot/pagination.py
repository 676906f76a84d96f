"""
Paginated list messages with reaction navigation.

The view stays interactive for a fixed window, after which navigation
is ignored and the reactions are cleared.
"""

import asyncio
import logging
from typing import Any, Optional, Sequence

import discord

logger = logging.getLogger(__name__)

PAGE_SIZE = 1900
VIEW_LIFETIME_SECONDS = 120.0

FIRST = "⏮️"
PREVIOUS = "⬅️"
NEXT = "➡️"
LAST = "⏭️"
NAVIGATION = (FIRST, PREVIOUS, NEXT, LAST)

EMPTY_TEXT = "No items to display."


def chunk_lines(lines: Sequence[str], size: int = PAGE_SIZE) -> list[str]:
    """Group lines into pages whose text stays under ``size`` characters."""
    pages: list[str] = []
    current = ""
    for line in lines:
        if current and len(current) + len(line) + 1 > size:
            pages.append(current)
            current = ""
        current += line + "\n"
    if current:
        pages.append(current)
    return pages


class PaginatedList:
    """Page state for one list message."""

    def __init__(self, pages: Sequence[str]):
        self.pages = list(pages)
        self.index = 0

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def needs_navigation(self) -> bool:
        return self.page_count > 1

    def navigate(self, emoji: str) -> bool:
        """Apply a navigation emoji. Returns True if the page changed."""
        previous = self.index
        if emoji == NEXT:
            self.index = min(self.index + 1, self.page_count - 1)
        elif emoji == PREVIOUS:
            self.index = max(self.index - 1, 0)
        elif emoji == FIRST:
            self.index = 0
        elif emoji == LAST:
            self.index = self.page_count - 1
        return self.index != previous

    def render(self) -> str:
        page = self.pages[self.index] if self.pages else EMPTY_TEXT
        return f"{page}\n\n**Page {self.index + 1} of {max(self.page_count, 1)}**"


class Paginator:
    """Sends a PaginatedList and drives it from reactions."""

    def __init__(self, client: discord.Client, lifetime: float = VIEW_LIFETIME_SECONDS):
        self.client = client
        self.lifetime = lifetime
        self._views: set[asyncio.Task] = set()

    async def send(self, channel: Any, lines: Sequence[str]) -> Optional[Any]:
        pages = chunk_lines(lines)
        if not pages:
            await channel.send(EMPTY_TEXT)
            return None

        view = PaginatedList(pages)
        sent = await channel.send(view.render())

        if view.needs_navigation:
            for emoji in NAVIGATION:
                await sent.add_reaction(emoji)
            task = asyncio.create_task(self._collect(sent, view), name=f"paginator:{sent.id}")
            self._views.add(task)
            task.add_done_callback(self._views.discard)

        return sent

    async def _collect(self, sent: Any, view: PaginatedList) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.lifetime

        def check(reaction: discord.Reaction, user: discord.abc.User) -> bool:
            return (
                reaction.message.id == sent.id
                and str(reaction.emoji) in NAVIGATION
                and not user.bot
            )

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            try:
                reaction, user = await self.client.wait_for(
                    "reaction_add", check=check, timeout=remaining
                )
            except asyncio.TimeoutError:
                break

            try:
                await reaction.remove(user)
            except discord.HTTPException as e:
                logger.debug(f"Could not remove reaction: {e}")

            if view.navigate(str(reaction.emoji)):
                await sent.edit(content=view.render())

        try:
            await sent.clear_reactions()
        except discord.HTTPException as e:
            logger.debug(f"Could not clear reactions: {e}")
