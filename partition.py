# partition.py
# Split a sorted word list into prefix shards and pack them into one archive.
# Layout: one entry per shard key (words one per line, CRLF), plus .shortnames.

import io
import os
import tarfile
import time
import zipfile

import requests

from utils import PREFIX_LENGTH, SHORTNAMES, LINE_TERMINATOR, ENCODING, shard_key, vlog


ARCHIVE_FORMATS = ("zip", "tar")


class UnsortedInputError(ValueError):
    """Raised when a word's shard key sorts before the shard being written."""

    def __init__(self, word, key, current):
        super().__init__(
            f"input is not sorted: {word!r} has key {key!r} after shard {current!r}"
        )
        self.word = word
        self.key = key
        self.current = current


class InvalidKeyError(ValueError):
    """Raised when a word's shard key cannot name an entry."""

    def __init__(self, word, key, reason):
        super().__init__(f"cannot store {word!r}: shard key {key!r} {reason}")
        self.word = word
        self.key = key


class BuildStats:
    """Counters and entry order collected while partitioning."""

    def __init__(self):
        self.words = 0
        self.short_words = 0
        self.skipped = 0
        self.entries = []

    @property
    def shard_count(self):
        return sum(1 for name in self.entries if name != SHORTNAMES)

    def __repr__(self):
        return (
            f"BuildStats(words={self.words}, short_words={self.short_words}, "
            f"skipped={self.skipped}, shards={self.shard_count})"
        )


def parse_source_line(line):
    """Return the text inside the first pair of double quotes, or None."""
    start = line.find('"')
    if start < 0:
        return None
    end = line.find('"', start + 1)
    if end < 0:
        return None
    return line[start + 1:end]


def read_source_lines(source):
    """Lines of a word list at a local path or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        t0 = time.time()
        resp = requests.get(source)
        resp.raise_for_status()
        lines = resp.text.splitlines()
        vlog(f"Downloaded {len(lines)} lines from {source}", t0)
        return lines
    with open(source, "r", encoding=ENCODING) as f:
        return f.read().splitlines()


def iter_source_words(lines, stats=None):
    """Yield the quoted word from each line; unparsable lines bump ``stats.skipped``."""
    for line in lines:
        word = parse_source_line(line)
        if word is None:
            if stats is not None:
                stats.skipped += 1
            continue
        yield word


def iter_shards(words, prefix_length=PREFIX_LENGTH, stats=None):
    """Group ``words`` into ``(entry name, words)`` pairs in write order.

    A shard is emitted as soon as the next word's key differs from it, so
    only one shard is held at a time; ``.shortnames`` comes last and holds
    every word shorter than ``prefix_length``.

    ``words`` must arrive with non-decreasing shard keys (a sort on
    ``str.lower`` is enough). A key that sorts before the open shard raises
    :class:`UnsortedInputError` instead of splitting the shard in two.
    """
    if stats is None:
        stats = BuildStats()
    short_words = []
    current = None
    shard = []
    for word in words:
        key = shard_key(word, prefix_length)
        if key is None:
            short_words.append(word)
            stats.short_words += 1
            stats.words += 1
            continue

        if key != current:
            if current is not None:
                if key < current:
                    raise UnsortedInputError(word, key, current)
                stats.entries.append(current)
                yield current, shard
            if key == SHORTNAMES:
                raise InvalidKeyError(word, key, "is reserved for the short word entry")
            current = key
            shard = []

        shard.append(word)
        stats.words += 1

    if current is not None:
        stats.entries.append(current)
        yield current, shard
    stats.entries.append(SHORTNAMES)
    yield SHORTNAMES, short_words


def _encode_shard(words, encoding):
    return "".join(word + LINE_TERMINATOR for word in words).encode(encoding)


def _is_file_name(name):
    if name in (".", ".."):
        return False
    return not any(sep and sep in name for sep in ("/", os.sep, os.altsep, "\0"))


def partition_words(words, out_dir, prefix_length=PREFIX_LENGTH, encoding=ENCODING, stats=None):
    """Write ``words`` into ``out_dir`` as one file per shard key plus ``.shortnames``.

    Keys that cannot be file names (containing "/" for instance) raise
    :class:`InvalidKeyError`; :func:`write_archive` stores them fine.
    """
    if stats is None:
        stats = BuildStats()
    t0 = time.time()
    os.makedirs(out_dir, exist_ok=True)

    for name, shard in iter_shards(words, prefix_length, stats):
        if not _is_file_name(name):
            raise InvalidKeyError(shard[0], name, "cannot be a file name; build without a work directory")
        with open(os.path.join(out_dir, name), "wb") as f:
            f.write(_encode_shard(shard, encoding))

    vlog(f"Partitioned {stats.words} words into {stats.shard_count} shards", t0)
    return stats


def archive_format(path):
    """Infer the container format from an archive's file name."""
    name = os.fspath(path).lower()
    if name.endswith(".zip"):
        return "zip"
    if name.endswith((".tar", ".tar.gz", ".tgz")):
        return "tar"
    raise ValueError(f"Cannot infer archive format from {path!r} (use .zip, .tar, .tar.gz or .tgz)")


def _check_format(archive_path, fmt):
    if fmt is None:
        fmt = archive_format(archive_path)
    if fmt not in ARCHIVE_FORMATS:
        raise ValueError(f"Unknown archive format {fmt!r}; expected one of {ARCHIVE_FORMATS}")
    return fmt


def _tar_mode(archive_path):
    return "w:gz" if os.fspath(archive_path).lower().endswith(("gz", "tgz")) else "w"


def pack_archive(out_dir, archive_path, entries, base_path="", fmt=None):
    """Pack the partition files ``entries`` from ``out_dir`` into a single archive.

    Entries are stored as ``base_path + name`` in the order given.
    """
    fmt = _check_format(archive_path, fmt)
    t0 = time.time()
    if fmt == "zip":
        with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name in entries:
                zf.write(os.path.join(out_dir, name), arcname=base_path + name)
    else:
        with tarfile.open(archive_path, _tar_mode(archive_path)) as tf:
            for name in entries:
                tf.add(os.path.join(out_dir, name), arcname=base_path + name, recursive=False)
    vlog(f"Packed {len(entries)} entries into {archive_path} ({fmt})", t0)


def write_archive(shards, archive_path, base_path="", fmt=None, encoding=ENCODING):
    """Write ``(name, words)`` pairs straight into an archive as ``base_path + name``.

    If writing fails part way, the incomplete archive is removed.
    """
    fmt = _check_format(archive_path, fmt)
    t0 = time.time()
    count = 0
    try:
        if fmt == "zip":
            with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for name, shard in shards:
                    zf.writestr(base_path + name, _encode_shard(shard, encoding))
                    count += 1
        else:
            with tarfile.open(archive_path, _tar_mode(archive_path)) as tf:
                for name, shard in shards:
                    data = _encode_shard(shard, encoding)
                    info = tarfile.TarInfo(base_path + name)
                    info.size = len(data)
                    info.mtime = int(time.time())
                    tf.addfile(info, io.BytesIO(data))
                    count += 1
    except Exception:
        if os.path.exists(archive_path):
            os.remove(archive_path)
        raise
    vlog(f"Wrote {count} entries into {archive_path} ({fmt})", t0)


def build_store(source, archive_path, base_path="", prefix_length=PREFIX_LENGTH,
                work_dir=None, sort=False, fmt=None):
    """Read ``source``, partition it and pack the result into ``archive_path``.

    Shards go straight into the archive unless ``work_dir`` is given, in which
    case they are also kept there as plain files. ``sort=True`` sorts the
    words on ``str.lower`` first; the sort is stable, so casing variants keep
    their source order.
    """
    stats = BuildStats()
    words = iter_source_words(read_source_lines(source), stats)
    if sort:
        words = sorted(words, key=str.lower)

    if work_dir is None:
        write_archive(iter_shards(words, prefix_length, stats), archive_path, base_path, fmt)
    else:
        partition_words(words, work_dir, prefix_length, stats=stats)
        pack_archive(work_dir, archive_path, stats.entries, base_path, fmt)

    if stats.skipped:
        vlog(f"Skipped {stats.skipped} lines without a quoted word")
    return stats
