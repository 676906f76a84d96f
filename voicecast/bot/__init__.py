"""
Discord surface: client wiring, commands, notifications, pagination
and the voice transport.
"""

from voicecast.bot.client import CrashNotifier, VoicecastClient
from voicecast.bot.commands import CommandDispatcher, build_help_text
from voicecast.bot.notifications import DiscordNotifier
from voicecast.bot.pagination import PaginatedList, Paginator, chunk_lines
from voicecast.bot.voice import DiscordVoiceTransport, PipeAudioSource

__all__ = [
    "CommandDispatcher",
    "CrashNotifier",
    "DiscordNotifier",
    "DiscordVoiceTransport",
    "PaginatedList",
    "Paginator",
    "PipeAudioSource",
    "VoicecastClient",
    "build_help_text",
    "chunk_lines",
]
