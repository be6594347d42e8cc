# strdb.py
# Word lookups against a packed, prefix-sharded store.

import contextlib

from store import PackedStore, open_store
from utils import PREFIX_LENGTH, ENCODING, shard_key, entry_name


def _matches(line, word, folded, match_case):
    if match_case:
        return line == word
    return line.lower() == folded


class StrDb:
    """
    Read-only word database over a :class:`store.PackedStore`.

      - resolve(word, match_case=False) -> stored word or None
      - contains(word, match_case=False) -> bool
      - words(visitor), words_until(visitor, result), count(), where(predicate, limit)

    Lookups open only the shard named by the word's prefix (or the
    ``.shortnames`` entry for short words) and scan it line by line.
    Enumeration walks every entry in archive order.
    """

    def __init__(self, store: PackedStore, prefix_length: int = PREFIX_LENGTH):
        if prefix_length < 1:
            raise ValueError(f"prefix_length must be positive, got {prefix_length}")
        self.store = store
        self.prefix_length = prefix_length

    @classmethod
    def open(cls, path, base_path="", prefix_length=PREFIX_LENGTH, encoding=ENCODING,
             fmt=None, eager=False) -> "StrDb":
        """Open the archive at ``path`` with the reader its format needs."""
        return cls(open_store(path, base_path, encoding, fmt=fmt, eager=eager), prefix_length)

    def build_index(self) -> None:
        """One-time preparation for sequential stores; no-op for random access."""
        self.store.build_index()

    # ---------- Lookups ----------
    def resolve(self, word: str, match_case: bool = False):
        """Return ``word`` in its stored casing, or None if it is not in the store.

        With ``match_case`` only an exact match counts. Otherwise the first
        line equal to ``word`` after lowercasing wins, so the build order
        decides between casing variants.
        """
        name = entry_name(shard_key(word, self.prefix_length))
        folded = word.lower()
        with self.store.open_entry(name) as lines:
            if lines is None:
                return None
            for line in lines:
                if _matches(line, word, folded, match_case):
                    return line
        return None

    def contains(self, word: str, match_case: bool = False) -> bool:
        return self.resolve(word, match_case) is not None

    def __contains__(self, word):
        return self.contains(word)

    # ---------- Enumeration ----------
    def iter_words(self):
        """Yield every stored word, entry by entry, in archive order."""
        with contextlib.closing(self.store.iter_entries()) as entries:
            for _name, lines in entries:
                yield from lines

    def words(self, visitor) -> None:
        """Call ``visitor(word)`` for every stored word."""
        with contextlib.closing(self.iter_words()) as words:
            for word in words:
                visitor(word)

    def words_until(self, visitor, result=None):
        """Fold over the stored words until the visitor asks to stop.

        ``visitor(word, result)`` returns ``(keep_going, result)``. The last
        result is returned, whether iteration stopped early or ran out.
        """
        with contextlib.closing(self.iter_words()) as words:
            for word in words:
                keep_going, result = visitor(word, result)
                if not keep_going:
                    break
        return result

    def count(self) -> int:
        return self.words_until(lambda _word, n: (True, n + 1), 0)

    def where(self, predicate, limit=None):
        """Words for which ``predicate`` is true, in encounter order.

        Stops after ``limit`` matches; ``None`` means no limit.
        """
        if limit is not None and limit <= 0:
            return []

        def collect(word, found):
            if predicate(word):
                found.append(word)
                if limit is not None and len(found) >= limit:
                    return False, found
            return True, found

        return self.words_until(collect, [])
