from __future__ import annotations

import pytest

from cloudcatcher.checksum import fletcher_32
from cloudcatcher.errors import FileAccessError, SizeLimitExceeded
from cloudcatcher.events import EventQueue
from cloudcatcher.filesync import FileSync, LocalFilesystem
from cloudcatcher.net import WebSocketLink
from cloudcatcher.packet import FileEditPacket

ABC = fletcher_32(b"abc")


class MemoryFilesystem:
    def __init__(self, files=None, read_only=(), dirs=()):
        self.files = dict(files or {})
        self.read_only = set(read_only)
        self.dirs = set(dirs)

    def read(self, path):
        return self.files.get(path)

    def write(self, path, contents):
        if path in self.read_only:
            raise FileAccessError(f"{path} is read only")
        self.files[path] = contents

    def exists(self, path):
        return path in self.files or path in self.dirs

    def is_dir(self, path):
        return path in self.dirs

    def is_read_only(self, path):
        return path in self.read_only


@pytest.fixture
def local(tmp_path):
    (tmp_path / "a.txt").write_bytes(b"abc")
    sent = []
    return FileSync(LocalFilesystem(tmp_path), sent.append), sent, tmp_path


def test_inbound_matching_checksum_applied(local):
    sync, sent, root = local
    ack = sync.apply_edit(FileEditPacket(flags=0, checksum=ABC, path="a.txt", contents=b"xyz"))
    assert ack.accepted is True
    assert ack.checksum == fletcher_32(b"xyz")
    assert (root / "a.txt").read_bytes() == b"xyz"
    assert sent == [b"31" + format(fletcher_32(b"xyz"), "08x").encode() + b"a.txt"]


def test_inbound_mismatch_rejected(local):
    sync, sent, root = local
    ack = sync.apply_edit(FileEditPacket(flags=0, checksum=ABC ^ 1, path="a.txt", contents=b"xyz"))
    assert ack.accepted is False
    assert ack.checksum == ABC
    assert (root / "a.txt").read_bytes() == b"abc"
    assert sent == [b"32c52562c4a.txt"]
    assert sync.rejected == 1


def test_inbound_absent_file_applied(local):
    sync, sent, root = local
    ack = sync.apply_edit(FileEditPacket(flags=0, checksum=0xDEADBEEF, path="new/b.txt", contents=b"hi"))
    assert ack.accepted is True
    assert (root / "new" / "b.txt").read_bytes() == b"hi"
    assert sent[0].startswith(b"31")


def test_inbound_force_overrides_mismatch(local):
    sync, sent, root = local
    ack = sync.apply_edit(FileEditPacket(flags=0x01, checksum=0, path="a.txt", contents=b"forced"))
    assert ack.accepted is True
    assert (root / "a.txt").read_bytes() == b"forced"


def test_inbound_outside_root_rejected(local):
    sync, sent, root = local
    ack = sync.apply_edit(FileEditPacket(flags=0x01, checksum=0, path="../escape.txt", contents=b"x"))
    assert ack.accepted is False
    assert not (root.parent / "escape.txt").exists()
    assert sent == [b"3200000000../escape.txt"]


def test_inbound_write_failure_rejected():
    sent = []
    fs = MemoryFilesystem({"ro.txt": b"abc"}, read_only={"ro.txt"})
    ack = FileSync(fs, sent.append).apply_edit(FileEditPacket(flags=0, checksum=ABC, path="ro.txt", contents=b"x"))
    assert ack.accepted is False
    assert ack.checksum == ABC
    assert fs.files["ro.txt"] == b"abc"


def test_outbound_request(local):
    sync, sent, root = local
    req = sync.request_edit("a.txt")
    assert req.checksum == ABC
    assert sent == [b"3002c52562c4a.txt\x00abc"]


def test_outbound_absent_file_is_empty(local):
    sync, sent, root = local
    sync.request_edit("fresh.txt")
    assert sent == [b"300200000000fresh.txt\x00"]


def test_outbound_oversized_sends_nothing(local):
    sync, sent, root = local
    (root / "big.bin").write_bytes(b"x" * 16384)
    with pytest.raises(SizeLimitExceeded):
        sync.request_edit("big.bin")
    assert sent == []


def test_outbound_size_limit_is_the_link_limit(tmp_path):
    link = WebSocketLink(object(), EventQueue())
    sent = []

    def send(data):
        link.send(data)
        sent.append(data)

    # 13 header bytes around the one-byte path
    (tmp_path / "p").write_bytes(b"x" * (16384 - 14))
    sync = FileSync(LocalFilesystem(tmp_path), send)
    sync.request_edit("p")
    assert len(sent[0]) == 16384

    (tmp_path / "p").write_bytes(b"x" * (16384 - 13))
    with pytest.raises(SizeLimitExceeded, match="too large to be edited remotely"):
        sync.request_edit("p")
    assert len(sent) == 1


def test_outbound_directory_refused(local):
    sync, sent, root = local
    (root / "sub").mkdir()
    with pytest.raises(FileAccessError):
        sync.request_edit("sub")
    assert sent == []


def test_outbound_read_only():
    sent = []
    fs = MemoryFilesystem({"ro.txt": b"abc"}, read_only={"ro.txt", "gone.txt"})
    sync = FileSync(fs, sent.append)
    sync.request_edit("ro.txt")
    assert sent == [b"300ac52562c4ro.txt\x00abc"]

    with pytest.raises(FileAccessError):
        sync.request_edit("gone.txt")
    assert len(sent) == 1


def test_resolve_stays_under_root(tmp_path):
    fs = LocalFilesystem(tmp_path)
    assert fs.resolve("a/b.txt") == tmp_path.resolve() / "a" / "b.txt"
    for bad in ("", "../x", "a/../../x", "a\x00b"):
        with pytest.raises(FileAccessError):
            fs.resolve(bad)


def test_complete(tmp_path):
    (tmp_path / "notes.txt").write_text("")
    (tmp_path / "nothing").mkdir()
    (tmp_path / "other.txt").write_text("")
    fs = LocalFilesystem(tmp_path)
    assert fs.complete("no") == ["tes.txt", "thing/"]
    assert fs.complete("nothing") == ["/"]
    assert fs.complete("zzz") == []


def test_inbound_existing_empty_file_still_compared(tmp_path):
    (tmp_path / "empty.txt").write_bytes(b"")
    sent = []
    sync = FileSync(LocalFilesystem(tmp_path), sent.append)

    ack = sync.apply_edit(FileEditPacket(flags=0, checksum=5, path="empty.txt", contents=b"x"))
    assert ack.accepted is False
    assert ack.checksum == 0
    assert (tmp_path / "empty.txt").read_bytes() == b""

    ack = sync.apply_edit(FileEditPacket(flags=0, checksum=0, path="empty.txt", contents=b"x"))
    assert ack.accepted is True
