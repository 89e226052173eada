import io

from xv6kit.ulib import atoi, gets, strcmp


def test_atoi_reads_leading_digits():
    assert atoi("123abc") == 123
    assert atoi("42") == 42


def test_atoi_without_digits_is_zero():
    assert atoi("abc") == 0
    assert atoi("") == 0
    assert atoi("-5") == 0
    assert atoi(" 7") == 0


def test_strcmp_equal():
    assert strcmp("hello", "hello") == 0
    assert strcmp(b"abc", "abc") == 0


def test_strcmp_ordering_signs():
    assert strcmp("abc", "abd") < 0
    assert strcmp("abd", "abc") > 0
    assert strcmp("ab", "abc") < 0
    assert strcmp("abc", "ab") > 0


def test_strcmp_difference_of_first_mismatch():
    assert strcmp("a", "") == ord("a")
    assert strcmp("az", "ab") == ord("z") - ord("b")


def test_strcmp_stops_at_nul():
    assert strcmp("ab\0x", "ab\0y") == 0


def test_gets_stops_after_newline():
    stream = io.StringIO("echo hi\nls\n")
    assert gets(stream, 100) == "echo hi\n"
    assert gets(stream, 100) == "ls\n"
    assert gets(stream, 100) == ""


def test_gets_respects_max():
    stream = io.BytesIO(b"abcdef\n")
    assert gets(stream, 4) == b"abc"
    assert gets(stream, 100) == b"def\n"


def test_gets_stops_at_carriage_return():
    assert gets(io.StringIO("x\ry"), 10) == "x\r"


def test_gets_eof_on_binary_stream():
    assert gets(io.BytesIO(b""), 10) == b""