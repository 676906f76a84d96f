"""
voicecast Test Suite

Test Categories:
- unit/: Fast, isolated unit tests
- streaming/: Pipeline and session controller tests (spawn child processes)
- fixtures/: Fakes for the transport, notifier, resolvers and ffmpeg
"""
