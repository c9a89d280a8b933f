import pytest

from xvsim.grep import grep_lines, main, match


@pytest.mark.parametrize(
    "pattern,text,expected",
    [
        ("abc", "xxabcxx", True),
        ("abc", "ab", False),
        ("^ab", "abc", True),
        ("^ab", "cab", False),
        ("b.d", "abcd", True),
        ("a*b", "b", True),
        ("a*b", "aaab", True),
        ("c$", "abc", True),
        ("c$", "abcd", False),
        ("^$", "", True),
        ("^$", "x", False),
        (".*", "", True),
        ("^a.*z$", "abcz", True),
        ("^a.*z$", "abczq", False),
        ("", "anything", True),
    ],
)
def test_match(pattern, text, expected):
    assert match(pattern, text) is expected


def test_long_line_no_recursion_error():
    text = "a" * 5000 + "b"
    assert match("a" * 5000 + "b", text) is True


def test_grep_lines():
    lines = ["apple", "banana", "cherry", "grape"]
    assert list(grep_lines("ap", lines)) == ["apple", "grape"]


def test_main_file_drops_unterminated_line(tmp_path, capsys):
    path = tmp_path / "in.txt"
    path.write_text("foo\nbar\nfood")
    assert main(["foo", str(path)]) == 0
    assert capsys.readouterr().out == "foo\n"


def test_main_multiple_files(tmp_path, capsys):
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.write_text("one\ntwo\n")
    b.write_text("three\nfour\n")
    assert main(["o", str(a), str(b)]) == 0
    assert capsys.readouterr().out == "one\ntwo\nfour\n"


def test_main_usage(capsys):
    assert main([]) == 1
    assert "usage: grep pattern [file ...]" in capsys.readouterr().err


def test_main_cannot_open(tmp_path, capsys):
    missing = tmp_path / "missing"
    assert main(["x", str(missing)]) == 1
    assert capsys.readouterr().out == f"grep: cannot open {missing}\n"