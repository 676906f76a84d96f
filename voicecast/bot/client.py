"""
Discord client wiring.

Routes gateway events to the command dispatcher and the session
controller, and posts the one-off crash notice.
"""

import logging
from typing import Optional

import discord

from voicecast.bot.commands import CommandDispatcher
from voicecast.bot.notifications import DiscordNotifier, EMOJI_ERROR
from voicecast.streaming.controller import StreamSessionController

logger = logging.getLogger(__name__)

CRASH_TEXT = f"{EMOJI_ERROR} **I just crashed, restarting is needed** {EMOJI_ERROR}"


def _channel_id(channel: Optional[discord.abc.Snowflake]) -> Optional[str]:
    return str(channel.id) if channel is not None else None


class VoicecastClient(discord.Client):
    """
    discord.py client for the bot process.

    Collaborators are attached with ``bind`` after construction because
    the transport and notifier need the client itself.
    """

    def __init__(self, **kwargs):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.voice_states = True
        super().__init__(intents=intents, **kwargs)

        self.controller: Optional[StreamSessionController] = None
        self.dispatcher: Optional[CommandDispatcher] = None
        self.notifier: Optional[DiscordNotifier] = None

    def bind(
        self,
        controller: StreamSessionController,
        dispatcher: CommandDispatcher,
        notifier: DiscordNotifier,
    ) -> None:
        self.controller = controller
        self.dispatcher = dispatcher
        self.notifier = notifier

    async def on_ready(self) -> None:
        logger.info(f"{self.user} is ready")
        if self.notifier is not None:
            try:
                await self.notifier.set_idle()
            except discord.HTTPException as e:
                logger.warning(f"Failed to set presence: {e}")

    async def on_message(self, message: discord.Message) -> None:
        if self.dispatcher is None:
            return
        own_id = self.user.id if self.user else None
        await self.dispatcher.handle(message, own_user_id=own_id)

    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if self.controller is None or self.user is None or member.id != self.user.id:
            return
        await self.controller.on_voice_state_update(
            _channel_id(before.channel),
            _channel_id(after.channel),
            guild_id=str(member.guild.id),
        )


class CrashNotifier:
    """
    Posts the crash notice to the command channel at most once.

    Sending is best effort: failures are logged and swallowed so that
    shutdown can continue.
    """

    def __init__(self, client: discord.Client, channel_id: Optional[str]):
        self.client = client
        self.channel_id = channel_id
        self._sent = False

    @property
    def sent(self) -> bool:
        return self._sent

    async def notify(self) -> bool:
        """Returns True if this call was the one that sent the notice."""
        if self._sent:
            return False
        # Claimed before the first await so concurrent callers see it
        self._sent = True

        if not self.channel_id:
            return False
        channel = self.client.get_channel(int(self.channel_id))
        if channel is None:
            logger.warning(f"Command channel {self.channel_id} not in cache, crash notice dropped")
            return False
        try:
            await channel.send(CRASH_TEXT)
        except Exception as e:
            logger.error(f"Failed to send crash notice: {e}")
            return False
        return True
