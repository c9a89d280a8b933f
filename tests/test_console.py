import io

import pytest

from xvsim.console import INPUT_BUF, Console, ctrl


def test_ctrl_codes():
    assert ctrl("D") == 4
    assert ctrl("@") == 0


def test_line_read_and_echo():
    con = Console()
    con.interrupt("hi\r")
    assert con.read(10) == "hi\n"
    assert con.out.getvalue() == "hi\n"


def test_read_stops_at_n():
    con = Console()
    con.interrupt("hello\n")
    assert con.read(2) == "he"
    assert con.read(100) == "llo\n"


def test_uncommitted_line_blocks():
    con = Console()
    con.interrupt("abc")
    with pytest.raises(BlockingIOError):
        con.read(10)


def test_backspace_edits_line():
    con = Console()
    con.interrupt("abx\x7f")
    con.interrupt([ord("c"), ctrl("H"), ord("d"), ord("\n")])
    assert con.read(10) == "abd\n"
    assert con.out.getvalue().count("\b \b") == 2


def test_kill_line():
    con = Console()
    con.interrupt("first\n")
    con.interrupt("junk")
    con.interrupt([ctrl("U")])
    con.interrupt("ok\n")
    assert con.read(100) == "first\n"
    assert con.read(100) == "ok\n"


def test_backspace_cannot_erase_committed_input():
    con = Console()
    con.interrupt("a\n\x7f\x7f")
    assert con.read(10) == "a\n"


def test_eof_after_data_is_saved():
    con = Console()
    con.interrupt([ord("a"), ord("b"), ctrl("D")])
    assert con.read(10) == "ab"
    assert con.read(10) == ""
    with pytest.raises(BlockingIOError):
        con.read(10)


def test_full_buffer_commits():
    con = Console()
    con.interrupt("x" * (INPUT_BUF + 10))
    data = con.read(1000)
    assert data == "x" * INPUT_BUF


def test_procdump_called():
    calls = []
    con = Console(procdump=lambda: calls.append(True))
    con.interrupt([ctrl("P")])
    assert calls == [True]


def test_write():
    out = io.StringIO()
    con = Console(out=out)
    assert con.write("abc") == 3
    assert con.write(b"de") == 2
    assert out.getvalue() == "abcde"