import io

import pytest

from sixfs.grep import grep, main, match


@pytest.mark.parametrize(
    "regex,text,expected",
    [
        ("^ab", "abc", True),
        ("^bc", "abc", False),
        ("bc$", "abc", True),
        ("c$", "abcd", False),
        ("a.c", "xabcx", True),
        ("a*b", "b", True),
        ("^a*$", "", True),
        ("^a*$", "aab", False),
        ("x", "abc", False),
        ("", "anything", True),
        ("^.*z", "abcz", True),
    ],
)
def test_match(regex, text, expected):
    assert match(regex, text) is expected


def test_grep_yields_matching_lines():
    stream = io.BytesIO(b"apple\nbanana\ncherry\n")
    assert list(grep("an", stream)) == [b"banana\n"]


def test_grep_ignores_unterminated_last_line():
    stream = io.BytesIO(b"an\nban")
    assert list(grep("an", stream)) == [b"an\n"]


def test_grep_drops_buffer_without_newline():
    stream = io.BytesIO(b"a" * 2000 + b"\nab\n")
    result = list(grep("a", stream))
    assert result[-1] == b"ab\n"
    assert len(result[0]) < 2001


def test_main_reads_files(tmp_path, capsys):
    path = tmp_path / "words"
    path.write_bytes(b"one\ntwo\nthree\n")
    assert main(["^t", str(path)]) == 0
    assert capsys.readouterr().out == "two\nthree\n"


def test_main_usage(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().err


def test_main_missing_file(tmp_path, capsys):
    missing = tmp_path / "nope"
    assert main(["x", str(missing)]) == 1
    assert f"grep: cannot open {missing}" in capsys.readouterr().out