from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Protocol

from .checksum import fletcher_32
from .constants import FLAG_EDIT, FLAG_READ_ONLY, MAX_PACKET_SIZE
from .errors import FileAccessError, SizeLimitExceeded
from .packet import FileAck, FileEditPacket

log = logging.getLogger(__name__)


class Filesystem(Protocol):
    def read(self, path: str) -> Optional[bytes]: ...

    def write(self, path: str, contents: bytes) -> None: ...

    def exists(self, path: str) -> bool: ...

    def is_dir(self, path: str) -> bool: ...

    def is_read_only(self, path: str) -> bool: ...


class LocalFilesystem:
    """Byte-level access to files below ``root``.

    Relative paths resolve against the root; anything resolving outside it
    raises FileAccessError.
    """

    def __init__(self, root: str | os.PathLike[str] = "."):
        self.root = Path(root).resolve()

    def resolve(self, path: str) -> Path:
        if not path or "\x00" in path:
            raise FileAccessError(f"invalid path: {path!r}")
        resolved = (self.root / path).resolve(strict=False)
        if resolved != self.root and self.root not in resolved.parents:
            raise FileAccessError(f"{path!r} is outside {self.root}")
        return resolved

    def read(self, path: str) -> Optional[bytes]:
        """File contents, or None when the file does not exist."""
        target = self.resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise FileAccessError(f"cannot read {path!r}: {e.strerror or e}") from e

    def write(self, path: str, contents: bytes) -> None:
        target = self.resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(contents)
        except OSError as e:
            raise FileAccessError(f"cannot write {path!r}: {e.strerror or e}") from e

    def exists(self, path: str) -> bool:
        return self.resolve(path).exists()

    def is_dir(self, path: str) -> bool:
        return self.resolve(path).is_dir()

    def is_read_only(self, path: str) -> bool:
        target = self.resolve(path)
        if target.exists():
            return not os.access(target, os.W_OK)
        # A missing file is read-only when its nearest existing directory is.
        parent = target.parent
        while not parent.exists() and parent != self.root:
            parent = parent.parent
        return not os.access(parent, os.W_OK)

    def complete(self, text: str) -> List[str]:
        """Suffixes completing ``text`` to entries below the root; directories end in "/"."""
        head, _, prefix = text.rpartition("/")
        try:
            directory = self.resolve(head or ".")
            entries = sorted(directory.iterdir())
        except (FileAccessError, OSError):
            return []

        results = []
        for entry in entries:
            if entry.name.startswith(prefix) and (entry.name != prefix or entry.is_dir()):
                suffix = entry.name[len(prefix) :]
                results.append(suffix + "/" if entry.is_dir() else suffix)
        return results


@dataclass(slots=True)
class FileSync:
    """Checksum-reconciled file edits between this client and the viewer.

    A remote write is applied only when forced, when the file is new, or
    when the checksum the viewer last saw matches the current contents.
    """

    fs: Filesystem
    send: Callable[[bytes], None]
    max_packet_size: int = MAX_PACKET_SIZE
    applied: int = field(default=0, init=False)
    rejected: int = field(default=0, init=False)

    def request_edit(self, path: str) -> FileEditPacket:
        """Open ``path`` in the viewer's editor.

        Raises FileAccessError or SizeLimitExceeded; nothing is sent then.
        """
        if self.fs.is_dir(path):
            raise FileAccessError(f"{path!r} is a directory")
        read_only = self.fs.is_read_only(path)
        contents = self.fs.read(path)
        if contents is None:
            if read_only:
                raise FileAccessError(f"{path!r} does not exist")
            contents = b""

        flags = FLAG_EDIT | (FLAG_READ_ONLY if read_only else 0)
        request = FileEditPacket(flags=flags, checksum=fletcher_32(contents), path=path, contents=contents)
        raw = request.to_bytes()
        # Same bound the link enforces, applied to the whole encoded packet.
        if len(raw) > self.max_packet_size:
            raise SizeLimitExceeded("This file is too large to be edited remotely")

        self.send(raw)
        log.info("requested remote edit of %s (%d bytes)", path, len(contents))
        return request

    def apply_edit(self, command: FileEditPacket) -> FileAck:
        """Apply a write from the viewer and acknowledge it. Never raises."""
        path = command.path
        current: Optional[bytes] = None
        current_checksum = 0
        try:
            current = self.fs.read(path)
        except FileAccessError as e:
            log.debug("edit of %s rejected: %s", path, e)
            return self._reply(FileAck(accepted=False, checksum=0, path=path))

        if current is not None:
            current_checksum = fletcher_32(current)

        allowed = command.force or current is None or current_checksum == command.checksum
        if not allowed:
            log.info("edit of %s rejected: checksum %08x, viewer saw %08x", path, current_checksum, command.checksum)
            return self._reply(FileAck(accepted=False, checksum=current_checksum, path=path))

        try:
            self.fs.write(path, command.contents)
        except FileAccessError as e:
            log.info("edit of %s rejected: %s", path, e)
            return self._reply(FileAck(accepted=False, checksum=current_checksum, path=path))

        return self._reply(FileAck(accepted=True, checksum=fletcher_32(command.contents), path=path))

    def _reply(self, ack: FileAck) -> FileAck:
        if ack.accepted:
            self.applied += 1
        else:
            self.rejected += 1
        self.send(ack.to_bytes())
        return ack
