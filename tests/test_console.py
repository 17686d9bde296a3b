import threading

import pytest

from sixfs.console import Console


def test_line_is_echoed_and_read():
    con = Console()
    con.feed("hi\n")
    assert con.read(10) == "hi\n"
    assert con.screen == "hi\n"


def test_carriage_return_becomes_newline():
    con = Console()
    con.feed("ok\r")
    assert con.read(10) == "ok\n"


def test_backspace_erases_character():
    con = Console()
    con.feed("ab\x7fc\n")
    assert con.read(10) == "ac\n"
    assert con.screen == "ab\b \bc\n"


def test_kill_line_erases_back_to_line_start():
    con = Console()
    con.feed("junk\x15good\n")
    assert con.read(20) == "good\n"


def test_backspace_does_not_cross_completed_line():
    con = Console()
    con.feed("x\n\x7f")
    assert con.read(10) == "x\n"
    assert con.screen == "x\n"


def test_read_limited_to_n():
    con = Console()
    con.feed("abcdef\n")
    assert con.read(3) == "abc"
    assert con.read(10) == "def\n"


def test_ctrl_d_ends_input_and_is_kept_for_next_read():
    con = Console()
    con.feed("ab\x04")
    assert con.read(10) == "ab"
    assert con.read(10) == ""


def test_ctrl_p_calls_procdump():
    calls = []
    con = Console(procdump=lambda: calls.append(1))
    con.feed([0x10])
    assert calls == [1]


def test_write_goes_to_screen_and_sink():
    seen = []
    con = Console(sink=seen.append)
    assert con.write(b"hello") == 5
    assert con.screen == "hello"
    assert "".join(seen) == "hello"


def test_kill_interrupts_read():
    con = Console()
    con.kill()
    with pytest.raises(InterruptedError):
        con.read(5)


def test_reader_waits_for_complete_line():
    con = Console()
    result = []
    t = threading.Thread(target=lambda: result.append(con.read(10)))
    t.start()
    con.feed("par")
    t.join(timeout=0.1)
    assert t.is_alive()
    con.feed("t\n")
    t.join(timeout=5)
    assert result == ["part\n"]