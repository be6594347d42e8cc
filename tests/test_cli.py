import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

import utils
from cli import run, make_predicate, EXIT_OK, EXIT_ERROR, EXIT_NOT_FOUND


SOURCE = '[\n  "ant",\n  "ants",\n  "Boa",\n  "boat",\n  "ox"\n]\n'


@pytest.fixture
def archive(tmp_path):
    source = tmp_path / "words.json"
    source.write_text(SOURCE, encoding="utf-8")
    path = tmp_path / "words.zip"
    assert run(["build", str(source), str(path), "--base-path", "english_words_all/"]) == EXIT_OK
    return str(path)


def last_line(capsys):
    return capsys.readouterr().out.strip().splitlines()[-1]


def test_build_reports_counts(tmp_path, capsys):
    source = tmp_path / "words.json"
    source.write_text(SOURCE, encoding="utf-8")
    assert run(["build", str(source), str(tmp_path / "w.tar.gz")]) == EXIT_OK
    out = capsys.readouterr().out
    assert "5 words in 2 shards (1 short words)" in out
    assert "Skipped 2 lines" in out


def test_contains(archive, capsys):
    base = ["--base-path", "english_words_all/"]
    assert run(["contains", archive, "BOAT"] + base) == EXIT_OK
    assert last_line(capsys) == "yes"
    assert run(["contains", archive, "boa", "--match-case"] + base) == EXIT_NOT_FOUND
    assert last_line(capsys) == "no"


def test_resolve(archive, capsys):
    base = ["--base-path", "english_words_all/"]
    assert run(["resolve", archive, "boa"] + base) == EXIT_OK
    assert last_line(capsys) == "Boa"
    assert run(["resolve", archive, "OX"] + base) == EXIT_OK
    assert last_line(capsys) == "ox"
    assert run(["resolve", archive, "cat"] + base) == EXIT_NOT_FOUND
    assert "not found" in capsys.readouterr().out


def test_count_and_where(archive, capsys):
    base = ["--base-path", "english_words_all/"]
    assert run(["count", archive] + base) == EXIT_OK
    assert last_line(capsys) == "5"
    assert run(["where", archive, "--startswith", "b", "--limit", "1"] + base) == EXIT_OK
    assert capsys.readouterr().out.split() == ["boat"]


def test_wrong_base_path_finds_nothing(archive, capsys):
    assert run(["count", archive, "--base-path", "german_words_all/"]) == EXIT_OK
    assert last_line(capsys) == "0"
    assert run(["resolve", archive, "ant"]) == EXIT_NOT_FOUND


def test_unsorted_build_fails(tmp_path, capsys):
    source = tmp_path / "words.json"
    source.write_text('"boat"\n"ant"\n', encoding="utf-8")
    assert run(["build", str(source), str(tmp_path / "w.zip")]) == EXIT_ERROR
    assert "--sort" in capsys.readouterr().out
    assert run(["build", str(source), str(tmp_path / "w.zip"), "--sort"]) == EXIT_OK


def test_missing_archive(tmp_path, capsys):
    assert run(["count", str(tmp_path / "missing.zip")]) == EXIT_ERROR
    assert "Could not find file" in capsys.readouterr().out


def test_verbose_flag_sets_globals(archive, capsys):
    assert run(["--verbose", "count", archive, "--base-path", "english_words_all/"]) == EXIT_OK
    assert utils.VERBOSE is True
    assert "count() (took" in capsys.readouterr().out


def test_make_predicate():
    p = make_predicate(substring="oa", startswith="b", endswith="t")
    assert p("boat")
    assert not p("boa")
    assert not p("goat")
    assert make_predicate()("anything")


def test_build_and_resolve_slash_word(tmp_path, capsys):
    source = tmp_path / "words.json"
    source.write_text('"ant"\n"w/o"\n', encoding="utf-8")
    path = str(tmp_path / "words.zip")
    assert run(["build", str(source), path]) == EXIT_OK
    assert run(["resolve", path, "W/O"]) == EXIT_OK
    assert last_line(capsys) == "w/o"


def test_console_script_module_list():
    pyproject = os.path.join(os.path.dirname(os.path.dirname(__file__)), "pyproject.toml")
    with open(pyproject, encoding="utf-8") as f:
        text = f.read()
    assert 'strdb = "cli:run"' in text
    modules = next(line for line in text.splitlines() if line.startswith("py-modules"))
    assert '"cli"' in modules
    assert '"main"' not in modules
