"""
Local video catalog.

Indexes a directory tree into named, addressable video entries. The
catalog is rebuilt wholesale on every scan.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = frozenset({".mp4", ".mkv", ".avi", ".mov", ".wmv"})

NAME_SEPARATOR = "_"

_IMDB_TAG = re.compile(r"\[imdbid-(tt\d+)\]")

# ASCII digits only; int() would also take "1_2" and other scripts' digits
_INDEX_TOKEN = re.compile(r"[+-]?[0-9]+")


def normalize_name(name: str) -> str:
    """Replace spaces with the catalog separator."""
    return name.replace(" ", NAME_SEPARATOR)


def imdb_url_for(path: Optional[str]) -> Optional[str]:
    """IMDb title link for a path carrying an ``[imdbid-tt...]`` tag."""
    if not path:
        return None
    match = _IMDB_TAG.search(path)
    if not match:
        return None
    return f"https://www.imdb.com/title/{match.group(1)}/"


@dataclass(frozen=True)
class VideoEntry:
    """A local video addressable by name or index."""

    name: str
    path: Path

    @property
    def imdb_url(self) -> Optional[str]:
        return imdb_url_for(str(self.path))


class VideoCatalog:
    """
    Catalog of local video files under a root directory.

    Usage:
        catalog = VideoCatalog("/srv/videos")
        catalog.refresh()
        entry = catalog.lookup("2") or catalog.lookup("Movie_B")
    """

    def __init__(self, root_dir: str | Path, extensions: Optional[Iterable[str]] = None):
        self.root_dir = Path(root_dir)
        self.extensions = (
            frozenset(e.lower() for e in extensions) if extensions else DEFAULT_EXTENSIONS
        )
        self._entries: tuple[VideoEntry, ...] = ()

    @property
    def entries(self) -> Sequence[VideoEntry]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[VideoEntry]:
        return iter(self._entries)

    def is_video_file(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def scan(self, root_dir: Optional[str | Path] = None) -> list[VideoEntry]:
        """
        Walk a directory tree and build entries for every video file.

        Files come before subdirectories, each in name order, so indices
        are stable between scans of an unchanged tree. Duplicate names keep
        the first file found.
        """
        root = Path(root_dir) if root_dir is not None else self.root_dir
        entries: list[VideoEntry] = []
        seen: set[str] = set()

        if not root.is_dir():
            logger.warning(f"Videos directory does not exist: {root}")
            return entries

        for dirpath, dirs, filenames in os.walk(root):
            # Skip hidden directories
            dirs[:] = sorted(d for d in dirs if not d.startswith("."))

            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue

                file_path = Path(dirpath) / filename
                if not self.is_video_file(file_path):
                    continue

                name = normalize_name(file_path.stem)
                if name in seen:
                    logger.warning(f"Duplicate video name {name!r}, skipping {file_path}")
                    continue

                seen.add(name)
                entries.append(VideoEntry(name=name, path=file_path.resolve()))

        return entries

    def refresh(self) -> Sequence[VideoEntry]:
        """Re-scan the root directory and replace all entries."""
        self._entries = tuple(self.scan())
        logger.info(f"Catalog refreshed: {len(self._entries)} videos in {self.root_dir}")
        return self._entries

    def lookup(self, token: str) -> Optional[VideoEntry]:
        """
        Find an entry by 1-based index or by exact normalized name.

        Returns None when the index is out of range or no name matches.
        """
        token = token.strip()
        if not _INDEX_TOKEN.fullmatch(token):
            name = normalize_name(token)
            for entry in self._entries:
                if entry.name == name:
                    return entry
            return None

        index = int(token)
        if 1 <= index <= len(self._entries):
            return self._entries[index - 1]
        return None

    def format_listing(self) -> list[str]:
        """Render one ``N. [name](<imdb link>)`` line per entry."""
        return [
            f"{i}. [{entry.name}](<{entry.imdb_url or ''}>)"
            for i, entry in enumerate(self._entries, start=1)
        ]
