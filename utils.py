# --- utils.py ---

import time
import threading
from colorama import Fore, Style, init

init()

# Number of leading characters that name a shard
PREFIX_LENGTH = 3

# Reserved entry for words shorter than the prefix
SHORTNAMES = ".shortnames"

# Shard line layout
LINE_TERMINATOR = "\r\n"
ENCODING = "utf-8"

VERBOSE = False
start_time = None

# Lock used for synchronized printing across threads
PRINT_LOCK = threading.Lock()


def shard_key(word, prefix_length=PREFIX_LENGTH):
    """Return the lowercase shard key for ``word``.

    Words shorter than ``prefix_length`` have no key and return ``None``;
    they live in the ``.shortnames`` entry instead.
    """
    if prefix_length < 1:
        raise ValueError(f"prefix_length must be positive, got {prefix_length}")
    if len(word) < prefix_length:
        return None
    return word[:prefix_length].lower()


def entry_name(key):
    """Entry holding the words for ``key`` (``None`` means the short words)."""
    return SHORTNAMES if key is None else key


def log_with_time(msg, color=Fore.LIGHTBLUE_EX):
    """Print ``msg`` with a timestamp."""
    global start_time
    if start_time is None:
        start_time = time.time()
    elapsed = time.time() - start_time
    mins = int(elapsed // 60)
    secs = elapsed % 60
    timestamp = Style.DIM + f"[{mins:02}:{secs:06.3f}]" + Style.RESET_ALL
    with PRINT_LOCK:
        print(f"{timestamp} {color}{msg}{Style.RESET_ALL}", flush=True)


def vlog(msg, t0=None):
    if VERBOSE:
        if t0 is not None:
            elapsed = time.time() - t0
            log_with_time(f"{msg} (took {elapsed:.3f}s)")
        else:
            log_with_time(msg)
