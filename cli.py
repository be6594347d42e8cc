import argparse
import tarfile
import time
import zipfile

import requests
from colorama import Fore

import utils
from utils import PREFIX_LENGTH, log_with_time, vlog
from partition import build_store, UnsortedInputError
from strdb import StrDb


# Exit codes
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_FOUND = 2


def _add_store_args(p):
    p.add_argument("archive", help="Packed store (.zip, .tar, .tar.gz or .tgz)")
    p.add_argument("--base-path", default="", help='Entry prefix inside the archive, e.g. "english_words_all/"')
    p.add_argument(
        "--prefix-length", type=int, default=PREFIX_LENGTH, help=f"Shard key length (default: {PREFIX_LENGTH})"
    )


def build_parser():
    parser = argparse.ArgumentParser(description="Prefix-sharded word store")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("build", help="Partition a sorted word list and pack it into an archive")
    p.add_argument("source", help='Word list path or http(s) URL; one "quoted" word per line')
    p.add_argument("archive", help="Output archive (.zip, .tar, .tar.gz or .tgz)")
    p.add_argument("--base-path", default="", help='Entry prefix inside the archive, e.g. "english_words_all/"')
    p.add_argument(
        "--prefix-length", type=int, default=PREFIX_LENGTH, help=f"Shard key length (default: {PREFIX_LENGTH})"
    )
    p.add_argument("--format", choices=["zip", "tar"], default=None, help="Archive format (default: from file name)")
    p.add_argument("--work-dir", default=None, help="Keep the partition files in this directory")
    p.add_argument("--sort", action="store_true", help="Sort the words case-insensitively before partitioning")

    for name, help_text in (("contains", "Check whether a word is stored"),
                            ("resolve", "Print a word in its stored casing")):
        p = sub.add_parser(name, help=help_text)
        _add_store_args(p)
        p.add_argument("word")
        p.add_argument("--match-case", action="store_true", help="Require an exact, case-sensitive match")

    p = sub.add_parser("count", help="Count the stored words")
    _add_store_args(p)

    p = sub.add_parser("where", help="List stored words matching simple filters")
    _add_store_args(p)
    p.add_argument("--contains", dest="substring", default=None, help="Keep words containing this text")
    p.add_argument("--startswith", default=None, help="Keep words starting with this text")
    p.add_argument("--endswith", default=None, help="Keep words ending with this text")
    p.add_argument("--limit", type=int, default=None, help="Stop after this many matches")
    return parser


def make_predicate(substring=None, startswith=None, endswith=None):
    def predicate(word):
        if substring is not None and substring not in word:
            return False
        if startswith is not None and not word.startswith(startswith):
            return False
        if endswith is not None and not word.endswith(endswith):
            return False
        return True
    return predicate


def _build(args):
    t0 = time.time()
    log_with_time(f"⟳ Building {args.archive} from {args.source}…")
    stats = build_store(
        args.source,
        args.archive,
        base_path=args.base_path,
        prefix_length=args.prefix_length,
        work_dir=args.work_dir,
        sort=args.sort,
        fmt=args.format,
    )
    vlog(f"Build finished: {stats!r}", t0)
    log_with_time(
        f"✅ {stats.words} words in {stats.shard_count} shards ({stats.short_words} short words)",
        color=Fore.GREEN,
    )
    if stats.skipped:
        log_with_time(f"Skipped {stats.skipped} lines without a quoted word", color=Fore.YELLOW)
    return EXIT_OK


def _query(args):
    db = StrDb.open(args.archive, base_path=args.base_path, prefix_length=args.prefix_length)
    t0 = time.time()

    if args.command == "contains":
        found = db.contains(args.word, args.match_case)
        vlog(f"contains({args.word!r})", t0)
        print("yes" if found else "no")
        return EXIT_OK if found else EXIT_NOT_FOUND

    if args.command == "resolve":
        word = db.resolve(args.word, args.match_case)
        vlog(f"resolve({args.word!r})", t0)
        if word is None:
            log_with_time(f"{args.word!r} not found", color=Fore.YELLOW)
            return EXIT_NOT_FOUND
        print(word)
        return EXIT_OK

    if args.command == "count":
        n = db.count()
        vlog("count()", t0)
        print(n)
        return EXIT_OK

    predicate = make_predicate(args.substring, args.startswith, args.endswith)
    matches = db.where(predicate, args.limit)
    vlog(f"where() matched {len(matches)} words", t0)
    for word in matches:
        print(word)
    return EXIT_OK


def run(argv=None):
    args = build_parser().parse_args(argv)

    utils.start_time = time.time()
    utils.VERBOSE = args.verbose

    try:
        if args.command == "build":
            return _build(args)
        return _query(args)
    except UnsortedInputError as e:
        log_with_time(f"Build aborted: {e}. Sort the list or pass --sort.", color=Fore.RED)
    except FileNotFoundError as e:
        log_with_time(f"Could not find file: {e.filename}", color=Fore.RED)
    except requests.RequestException as e:
        log_with_time(f"Could not download word list: {e}", color=Fore.RED)
    except (OSError, ValueError, zipfile.BadZipFile, tarfile.TarError) as e:
        log_with_time(f"Error: {e}", color=Fore.RED)
    return EXIT_ERROR
