"""
Unit tests for the paginated list view.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from voicecast.bot.pagination import (
    EMPTY_TEXT,
    FIRST,
    LAST,
    NAVIGATION,
    NEXT,
    PREVIOUS,
    PaginatedList,
    Paginator,
    chunk_lines,
)


@pytest.mark.unit
class TestChunkLines:

    def test_single_page(self):
        assert chunk_lines(["a", "b"]) == ["a\nb\n"]

    def test_splits_under_limit(self):
        lines = [f"{i}. {'x' * 90}" for i in range(100)]

        pages = chunk_lines(lines, size=1900)

        assert len(pages) > 1
        assert all(len(page) <= 1900 for page in pages)
        assert "".join(pages).splitlines() == lines

    def test_empty(self):
        assert chunk_lines([]) == []


@pytest.mark.unit
class TestPaginatedList:

    @pytest.fixture
    def view(self) -> PaginatedList:
        return PaginatedList(["one", "two", "three"])

    def test_render_first_page(self, view: PaginatedList):
        assert view.render() == "one\n\n**Page 1 of 3**"

    def test_navigation(self, view: PaginatedList):
        assert view.navigate(NEXT)
        assert view.render() == "two\n\n**Page 2 of 3**"
        assert view.navigate(LAST)
        assert view.index == 2
        assert view.navigate(PREVIOUS)
        assert view.navigate(FIRST)
        assert view.index == 0

    def test_index_is_clamped(self, view: PaginatedList):
        assert not view.navigate(PREVIOUS)
        assert view.index == 0
        view.navigate(LAST)
        assert not view.navigate(NEXT)
        assert view.index == 2

    def test_unknown_emoji(self, view: PaginatedList):
        assert not view.navigate("🎉")

    def test_single_page_needs_no_navigation(self):
        assert not PaginatedList(["only"]).needs_navigation

    def test_empty_render(self):
        assert PaginatedList([]).render() == f"{EMPTY_TEXT}\n\n**Page 1 of 1**"


def make_reaction(sent: MagicMock, emoji: str) -> MagicMock:
    reaction = MagicMock()
    reaction.emoji = emoji
    reaction.message.id = sent.id
    reaction.remove = AsyncMock()
    return reaction


@pytest.mark.unit
class TestPaginator:

    @pytest.fixture
    def sent(self) -> MagicMock:
        sent = MagicMock()
        sent.id = 77
        sent.add_reaction = AsyncMock()
        sent.edit = AsyncMock()
        sent.clear_reactions = AsyncMock()
        return sent

    @pytest.fixture
    def channel(self, sent: MagicMock) -> MagicMock:
        channel = MagicMock()
        channel.send = AsyncMock(return_value=sent)
        return channel

    @pytest.mark.asyncio
    async def test_single_page_has_no_reactions(self, channel, sent):
        client = MagicMock()
        paginator = Paginator(client)

        await paginator.send(channel, ["1. [Movie_A](<>)"])

        channel.send.assert_awaited_once_with("1. [Movie_A](<>)\n\n\n**Page 1 of 1**")
        sent.add_reaction.assert_not_called()
        client.wait_for.assert_not_called()

    @pytest.mark.asyncio
    async def test_reaction_navigation_then_expiry(self, channel, sent):
        user = MagicMock(bot=False)
        reactions = [(make_reaction(sent, NEXT), user), asyncio.TimeoutError()]
        client = MagicMock()
        client.wait_for = AsyncMock(side_effect=reactions)
        paginator = Paginator(client, lifetime=5.0)

        lines = [f"{i}. {'x' * 100}" for i in range(40)]
        await paginator.send(channel, lines)
        await asyncio.gather(*paginator._views)

        assert [c.args[0] for c in sent.add_reaction.await_args_list] == list(NAVIGATION)
        sent.edit.assert_awaited_once()
        assert "**Page 2 of" in sent.edit.await_args.kwargs["content"]
        reactions[0][0].remove.assert_awaited_once_with(user)
        sent.clear_reactions.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_expired_view_ignores_navigation(self, channel, sent):
        client = MagicMock()
        client.wait_for = AsyncMock()
        paginator = Paginator(client, lifetime=0.0)

        await paginator.send(channel, [f"{i}. {'x' * 100}" for i in range(40)])
        await asyncio.gather(*paginator._views)

        client.wait_for.assert_not_called()
        sent.edit.assert_not_called()
        sent.clear_reactions.assert_awaited_once()
