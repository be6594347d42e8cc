# store.py
# Read side of the packed archive.
#
# ZipStore  - random access: entries are opened by name, O(1) per lookup.
# TarStore  - sequential access: a tar stream only offers a forward cursor, so
#             a name -> ordinal index is built once and each lookup re-reads the
#             stream up to the wanted member. O(position) per lookup; prefer
#             ZipStore for large stores.

import contextlib
import io
import tarfile
import threading
import time
import zipfile

from partition import archive_format
from utils import ENCODING, vlog


def _read_lines(raw, encoding):
    """Yield lines of a binary entry stream without their terminators.

    Lines are split on LF before decoding, so ``encoding`` must be ASCII
    compatible (UTF-8 by default).
    """
    for line in raw:
        yield line.decode(encoding).rstrip("\r\n")


class PackedStore:
    """Common shape of the archive readers.

    ``source`` is either a filesystem path or a zero-argument callable that
    returns a fresh binary stream over the archive bytes. Every read opens its
    own handle; nothing is shared between concurrent queries.
    """

    def __init__(self, source, base_path="", encoding=ENCODING):
        self.source = source
        self.base_path = base_path
        self.encoding = encoding

    def _open_raw(self):
        if callable(self.source):
            return self.source()
        return open(self.source, "rb")

    def _strip(self, name):
        """Entry name relative to ``base_path``, or None if outside it."""
        if not name.startswith(self.base_path):
            return None
        rel = name[len(self.base_path):]
        return rel or None

    def build_index(self):
        """Prepare the store for lookups. Nothing to do for random access."""

    def open_entry(self, name):
        raise NotImplementedError

    def iter_entries(self):
        raise NotImplementedError


class ZipStore(PackedStore):
    """Random-access store backed by a ZIP archive."""

    @contextlib.contextmanager
    def open_entry(self, name):
        """Yield the lines of entry ``name``, or None if the archive has no such entry."""
        with self._open_raw() as raw, zipfile.ZipFile(raw) as zf:
            try:
                info = zf.getinfo(self.base_path + name)
            except KeyError:
                yield None
                return
            with zf.open(info) as entry:
                yield _read_lines(entry, self.encoding)

    def iter_entries(self):
        """Yield ``(name, lines)`` for every file entry in archive order."""
        with self._open_raw() as raw, zipfile.ZipFile(raw) as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                name = self._strip(info.filename)
                if name is None:
                    continue
                with zf.open(info) as entry:
                    yield name, _read_lines(entry, self.encoding)


class TarStore(PackedStore):
    """Sequential-access store backed by a (optionally compressed) tar stream.

    ``tarfile`` stream mode cannot seek, so lookups go through an ordinal index
    built on first use (or in the constructor with ``eager=True``). The index
    is built exactly once per handle and published only when complete.
    """

    def __init__(self, source, base_path="", encoding=ENCODING, eager=False):
        super().__init__(source, base_path, encoding)
        self._index = None
        self._index_lock = threading.Lock()
        if eager:
            self.build_index()

    @contextlib.contextmanager
    def _members(self):
        with self._open_raw() as raw, tarfile.open(fileobj=raw, mode="r|*") as tf:
            yield tf

    def build_index(self):
        if self._index is not None:
            return self._index
        with self._index_lock:
            if self._index is None:
                self._index = self._scan_index()
        return self._index

    def _scan_index(self):
        t0 = time.time()
        index = {}
        with self._members() as tf:
            for position, member in enumerate(tf):
                if not member.isfile():
                    continue
                name = self._strip(member.name)
                if name is not None:
                    index[name] = position
        vlog(f"Built ordinal index over {len(index)} entries", t0)
        return index

    @property
    def index(self):
        return self.build_index()

    @contextlib.contextmanager
    def open_entry(self, name):
        """Yield the lines of entry ``name``, or None if the index has no such entry."""
        position = self.build_index().get(name)
        if position is None:
            yield None
            return
        with self._members() as tf:
            member = None
            for i, member in enumerate(tf):
                if i == position:
                    break
            else:
                raise tarfile.ReadError(
                    f"archive ended before member #{position} ({self.base_path + name!r})"
                )
            with tf.extractfile(member) as entry:
                yield _read_lines(entry, self.encoding)

    def iter_entries(self):
        """Yield ``(name, lines)`` for every file member in stream order."""
        with self._members() as tf:
            for member in tf:
                if not member.isfile():
                    continue
                name = self._strip(member.name)
                if name is None:
                    continue
                with tf.extractfile(member) as entry:
                    yield name, _read_lines(entry, self.encoding)


def open_store(source, base_path="", encoding=ENCODING, fmt=None, eager=False):
    """Open ``source`` with the reader that matches its archive format.

    The format is inferred from the file name unless ``fmt`` is given, which
    it must be for a callable source.
    """
    if fmt is None:
        fmt = archive_format(source)
    if fmt == "zip":
        return ZipStore(source, base_path, encoding)
    if fmt == "tar":
        return TarStore(source, base_path, encoding, eager=eager)
    raise ValueError(f"Unknown archive format {fmt!r}")


def store_from_bytes(data, fmt, base_path="", encoding=ENCODING, eager=False):
    """Store over an in-memory archive; each read gets its own BytesIO."""
    return open_store(lambda: io.BytesIO(data), base_path, encoding, fmt=fmt, eager=eager)
