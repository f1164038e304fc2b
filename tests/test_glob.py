"""Tests for glob matching of trusted command patterns."""

import re
import time

import pytest

from trustgate.safety.glob import compile_glob, glob_to_regex, is_match


def test_glob_to_regex_is_anchored():
    assert glob_to_regex("npm run *") == "^npm run .*$"
    assert glob_to_regex("ls ?") == "^ls .$"


def test_inner_pieces_are_atomic():
    assert glob_to_regex("a*b*c") == "^a(?>.*?b).*c$"
    assert glob_to_regex("**x") == "^.*x$"


@pytest.mark.parametrize(
    "pattern,candidate,expected",
    [
        ("git*", "git status", True),
        ("git*", "git", True),
        ("git*", "legit status", False),
        ("npm run *", "npm run build", True),
        ("npm run *", "npm install", False),
        ("ls ?", "ls a", True),
        ("ls ?", "ls ab", False),
        ("ls ?", "ls ", False),
        ("npm run build", "npm run build", True),
        ("npm run build", "npm run test", False),
        ("echo *", "echo\n", False),
    ],
)
def test_is_match(pattern, candidate, expected):
    assert is_match(pattern, candidate) is expected


def test_no_trailing_newline_match():
    assert not is_match("git status", "git status\n")


def test_regex_characters_pass_through():
    # "." is not escaped, it keeps its regex meaning
    assert is_match("cat a.txt", "cat aXtxt")


def test_malformed_pattern_never_matches():
    assert not is_match("grep [abc", "grep a")
    with pytest.raises(re.error):
        compile_glob("grep [abc")


def test_malformed_pattern_still_matches_itself():
    assert is_match("grep [abc", "grep [abc")


@pytest.mark.parametrize(
    "pattern,candidate,expected",
    [
        ("git *-m *", "git commit -m x -m y", True),
        ("*a*b", "xaxbxab", True),
        ("*a*b", "xaxbxa", False),
        ("a*a", "a", False),
        ("a*a", "aa", True),
    ],
)
def test_multiple_wildcards(pattern, candidate, expected):
    assert is_match(pattern, candidate) is expected


def test_many_wildcards_do_not_backtrack():
    pattern = "git *a*a*a*a*a*a*a*a*a*a*b"
    start = time.perf_counter()
    assert not is_match(pattern, "git " + "a" * 60)
    assert is_match(pattern, "git " + "a" * 60 + "b")
    assert time.perf_counter() - start < 1.0
