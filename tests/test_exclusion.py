"""Tests for exclusion.py module."""

from __future__ import annotations

import logging

import pytest

from exclusion import ExclusionMatcher, glob_to_regex, normalize_path


@pytest.mark.parametrize(
    "pattern,path,expected",
    [
        ("**/node_modules/**", "/home/u/project/node_modules/pkg/index.js", True),
        ("**/node_modules/**", "/home/u/project/src/index.js", False),
        ("/tmp/*.log", "/tmp/app.log", True),
        ("/tmp/*.log", "/tmp/sub/app.log", False),
        ("/tmp/file?.txt", "/tmp/file1.txt", True),
        ("/tmp/file?.txt", "/tmp/file12.txt", False),
        ("/tmp/file[0-9].txt", "/tmp/file7.txt", True),
        ("/tmp/file[0-9].txt", "/tmp/fileA.txt", False),
        ("/tmp/a.b", "/tmp/aXb", False),
        ("*.log", "/var/log/app.log", True),
        ("*.log", "/var/log/app.log.gz", False),
        ("node_modules", "/home/u/project/node_modules", True),
        ("node_modules", "/home/u/project/node_modules/pkg/index.js", True),
        ("node_modules", "/home/u/my_node_modules", False),
        ("/tmp/*.log", "/srv/tmp/app.log", False),
        ("/tmp/file[!0-9].txt", "/tmp/fileA.txt", True),
        ("/tmp/file[!0-9].txt", "/tmp/file7.txt", False),
    ],
)
def test_glob_semantics(pattern, path, expected):
    assert ExclusionMatcher().matches(path, pattern) is expected


def test_matching_ignores_case():
    matcher = ExclusionMatcher(["**/Important/**"])
    assert matcher.is_excluded("/home/u/IMPORTANT/notes.txt")
    assert matcher.is_excluded("/home/u/important/notes.txt")


def test_directory_pattern_matches_the_directory_itself():
    """A pattern ending in /** also protects the directory path it names."""
    matcher = ExclusionMatcher(["**/fixture/**"])
    assert matcher.is_excluded("/tmp/fixture")
    assert matcher.is_excluded("/tmp/fixture/")
    assert not matcher.is_excluded("/tmp/fixtures")


def test_windows_separators_are_normalized():
    matcher = ExclusionMatcher(["**/Temp/**"])
    assert matcher.is_excluded("C:\\Users\\u\\AppData\\Local\\Temp\\x.tmp")
    assert normalize_path("C:\\a\\b") == "C:/a/b"


def test_per_category_patterns_apply_only_to_their_category():
    matcher = ExclusionMatcher(per_category={"browser": ["**/Chrome/**"]})

    assert matcher.is_excluded("/cache/Chrome/Default", "browser")
    assert not matcher.is_excluded("/cache/Chrome/Default", "user")
    assert not matcher.is_excluded("/cache/Chrome/Default")


def test_global_patterns_apply_to_every_category():
    matcher = ExclusionMatcher(["**/keep/**"], {"log": ["*.log"]})
    assert matcher.patterns_for("log") == ["**/keep/**", "*.log"]
    assert matcher.is_excluded("/var/keep", "system")
    assert matcher.is_excluded("/var/keep", "log")


def test_from_config_reads_exclude_patterns_section():
    matcher = ExclusionMatcher.from_config({"global": ["**/a/**"], "perCategory": {"npm": ["**/b/**"]}})
    assert matcher.global_patterns == ["**/a/**"]
    assert matcher.per_category == {"npm": ["**/b/**"]}
    assert ExclusionMatcher.from_config({}).patterns_for("npm") == []


def test_malformed_pattern_fails_open(caplog):
    """An invalid pattern never matches and is reported once as a warning."""
    matcher = ExclusionMatcher(["/tmp/[unclosed"])

    with caplog.at_level(logging.WARNING, logger="ultraclean.exclusion"):
        assert not matcher.is_excluded("/tmp/[unclosed")
        assert not matcher.is_excluded("/tmp/other")

    warnings = [r for r in caplog.records if "Invalid exclude pattern" in r.getMessage()]
    assert len(warnings) == 1


def test_glob_to_regex_escapes_literals():
    assert glob_to_regex("a.b+c") == r"a\.b\+c"
    assert glob_to_regex("**") == ".*"


def test_relative_patterns_match_anywhere_in_the_path():
    matcher = ExclusionMatcher(["**/keep/**"], {"log": ["*.log"]})
    assert matcher.is_excluded("/var/log/app.log", "log")
    assert matcher.is_excluded("/var/log/nested/debug.LOG", "log")
    assert not matcher.is_excluded("/var/log/app.log", "system")


def test_negated_character_class():
    assert glob_to_regex("[!ab]") == "[^ab]"
