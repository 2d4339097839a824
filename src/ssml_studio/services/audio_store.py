"""
Storage for synthesized audio files.

Each synthesis result is written once under a random name and served
as a static file:

    {base_dir}/{uuid}.mp3   ->   {url_prefix}/{uuid}.mp3

Writes are atomic (temp file + rename) so a crash never leaves a
truncated file behind a URL that was already handed out.
"""
from __future__ import annotations

import hashlib
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ssml_studio.core.config import AudioConfig
from ssml_studio.core.logging import get_logger, info, warn
from ssml_studio.errors import InvalidInputError, NotFoundError
from ssml_studio.utils.timeit import timeit

_LOG = get_logger("ssml-studio.audio")

_NAME_RE = re.compile(r"^[0-9a-f]{32}$")


@dataclass(frozen=True)
class StoredAudio:
    """
    Attributes:
        name: File stem (uuid hex).
        path: Location on disk.
        url: Public URL path.
        file_size: Bytes written.
        sha256: Digest of the audio bytes.
    """
    name: str
    path: Path
    url: str
    file_size: int
    sha256: str


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class AudioStore:
    """Writes audio files and maps them to URLs."""

    def __init__(self, config: Optional[AudioConfig] = None):
        self._config = config or AudioConfig()
        self._base = Path(self._config.base_dir)

    @property
    def base_dir(self) -> Path:
        return self._base

    def path_for(self, name: str) -> Path:
        """
        Path of a stored file by name.

        Raises:
            InvalidInputError: If the name is not a store-generated name.
        """
        if not _NAME_RE.match(name):
            raise InvalidInputError(f"Invalid audio name: {name!r}")
        return self._base / f"{name}.{self._config.extension}"

    def url_for(self, name: str) -> str:
        return f"{self._config.url_prefix}/{name}.{self._config.extension}"

    def save(self, audio: bytes) -> StoredAudio:
        """
        Write audio under a fresh name.

        Raises:
            OSError: If the file cannot be written; the temp file is removed.
        """
        name = uuid.uuid4().hex
        path = self.path_for(name)
        tmp = path.with_suffix(".tmp")

        self._base.mkdir(parents=True, exist_ok=True)
        try:
            with timeit("audio_write") as t:
                tmp.write_bytes(audio)
                tmp.replace(path)
        except OSError as exc:
            warn(_LOG, "audio_write_error", name=name, error=str(exc))
            tmp.unlink(missing_ok=True)
            raise

        stored = StoredAudio(
            name=name,
            path=path,
            url=self.url_for(name),
            file_size=len(audio),
            sha256=hash_bytes(audio),
        )
        info(_LOG, "audio_saved", name=name, bytes=len(audio), seconds=round(t.seconds, 4))
        return stored

    def load(self, name: str) -> bytes:
        path = self.path_for(name)
        if not path.exists():
            raise NotFoundError("audio", name)
        return path.read_bytes()

    def delete(self, name: str) -> bool:
        """Remove a stored file. Returns False if it did not exist."""
        path = self.path_for(name)
        if not path.exists():
            return False
        path.unlink()
        return True
