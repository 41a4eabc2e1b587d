import pytest

from src.shared.exceptions import ValidationError
from src.shared.utils.glob import glob_match, validate_pattern


@pytest.mark.parametrize(
    "pattern,text,expected",
    [
        ("animals", "animals", True),
        ("animals", "animals:page=1", False),
        ("animals:*", "animals:page=1", True),
        ("*:page=1", "tasks:page=1", True),
        ("*", "", True),
        ("a*b*c", "aXXbYYc", True),
        ("a*b*c", "aXXbYY", False),
        ("**", "anything", True),
        ("a.b", "aXb", False),
        ("[ab]", "a", False),
    ],
)
def test_glob_match(pattern, text, expected):
    assert glob_match(pattern, text) is expected


def test_pathological_pattern_terminates():
    assert glob_match("*a" * 100 + "b", "a" * 2000) is False


def test_validate_pattern():
    assert validate_pattern("abc", max_length=3) == "abc"
    with pytest.raises(ValidationError):
        validate_pattern("abcd", max_length=3)
    with pytest.raises(ValidationError):
        validate_pattern(None)
