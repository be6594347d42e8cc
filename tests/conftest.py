import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

import utils
from partition import partition_words, pack_archive


SCENARIO = ["ant", "ants", "boa", "boat", "ox"]

# Sorted on str.lower; "Apple"/"apple" keep source order so "Apple" wins
# case-insensitive lookups.
WORDS = [
    "a", "I", "ox", "Zn",
    "aardvark", "Apple", "apple", "applesauce",
    "bee", "beetle", "Berlin",
    "café", "cat", "catalog",
    "Dog", "doghouse",
    "zebra",
]


@pytest.fixture(autouse=True)
def quiet_logs():
    utils.VERBOSE = False
    utils.start_time = 0
    yield
    utils.VERBOSE = False


def make_archive(tmp_path, words, fmt="zip", base_path="", prefix_length=3, name=None):
    """Partition ``words`` and pack them; returns (archive_path, stats)."""
    work = tmp_path / "parts"
    stats = partition_words(words, work, prefix_length)
    if name is None:
        name = "store.zip" if fmt == "zip" else "store.tar.gz"
    archive = tmp_path / name
    pack_archive(work, archive, stats.entries, base_path, fmt)
    return archive, stats
