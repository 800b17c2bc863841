import errno

import pytest

from infoviewer.strutil import InfoViewerError, split


def test_split_basic():
    assert split("a,b,c", ",") == ["a", "b", "c"]


def test_split_empty_input_gives_no_fields():
    assert split("", ",") == []


def test_split_without_separator_returns_whole_text():
    assert split("abc", ",") == ["abc"]


def test_split_trailing_separator_keeps_empty_field():
    assert split("a,", ",") == ["a", ""]


def test_split_leading_and_double_separator():
    assert split(",a,,b", ",") == ["", "a", "", "b"]


def test_split_multi_character_separator():
    assert split("one::two::three", "::") == ["one", "two", "three"]


@pytest.mark.parametrize("text", ["a", "a,b", ",", "x,,y,", "hello world"])
def test_split_join_round_trip(text):
    assert ",".join(split(text, ",")) == text


def test_split_field_count_invariant():
    text = "1;2;3;4;5"
    assert len(split(text, ";")) == text.count(";") + 1


def test_split_rejects_empty_separator():
    with pytest.raises(ValueError):
        split("abc", "")


def test_error_message_without_errno():
    err = InfoViewerError("font can't be loaded")
    assert str(err) == "font can't be loaded"
    assert err.errno is None


def test_error_message_with_errno():
    err = InfoViewerError("forkpty failed", errno=errno.ENOENT)
    text = str(err)
    assert text.startswith("forkpty failed\n")
    assert f"errno: {errno.ENOENT}" in text
    assert err.errno == errno.ENOENT


def test_error_can_be_raised_and_caught():
    with pytest.raises(InfoViewerError, match="boom") as excinfo:
        raise InfoViewerError("boom", errno=errno.EIO)
    assert excinfo.value.errno == errno.EIO
    assert str(excinfo.value).startswith("boom\n")