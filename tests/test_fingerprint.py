"""
Tests for backtrace handling and exception fingerprints.
"""

from activerabbit.helpers.fingerprint import (
    clean_message,
    exception_type_name,
    format_traceback,
    generate_fingerprint,
    parse_backtrace,
    relevant_frames,
)


class CustomError(Exception):
    pass


def _capture(func, *args):
    try:
        func(*args)
    except Exception as e:
        return e
    raise AssertionError("expected an exception")


def _lookup_user(user_id):
    raise ValueError(f"user {user_id} not found")


def _two_sites(first):
    if first:
        raise ValueError("bad input")
    raise ValueError("bad input")


class TestCleanMessage:
    def test_placeholders(self):
        assert clean_message("object at 0x7f3a2b") == "object at <hex>"
        assert clean_message("missing key 'email'") == "missing key '<str>'"
        assert clean_message('bad value "abc"') == 'bad value "<str>"'
        assert clean_message("cannot open /var/data") == "cannot open <path>"
        assert clean_message("retry 3 of 5") == "retry <num> of <num>"

    def test_empty(self):
        assert clean_message("") == ""
        assert clean_message(None) == ""


class TestBacktrace:
    def test_innermost_frame_first(self):
        error = _capture(_lookup_user, 1)
        frames = format_traceback(error)
        assert "_lookup_user" in frames[0]
        assert "_capture" in frames[-1]

    def test_unraised_exception_has_no_frames(self):
        assert format_traceback(ValueError("never raised")) == []

    def test_parse_frames(self):
        parsed = parse_backtrace(['File "/app/models/user.py", line 42, in save', "garbage"])
        assert parsed[0] == {
            "filename": "/app/models/user.py",
            "lineno": 42,
            "method": "save",
            "line": 'File "/app/models/user.py", line 42, in save',
        }
        assert parsed[1] == {"line": "garbage"}

    def test_relevant_frames_skip_libraries_and_strip_line_numbers(self):
        lines = [
            'File "/usr/lib/python3/site-packages/lib.py", line 10, in call',
            'File "/app/service.py", line 20, in run',
            'File "/app/main.py", line 30, in main',
        ]
        assert relevant_frames(lines, "/app") == [
            'File "/app/service.py", line LINE, in run',
            'File "/app/main.py", line LINE, in main',
        ]

    def test_relevant_frames_capped(self):
        lines = [f'File "/app/m{i}.py", line {i}, in f{i}' for i in range(6)]
        assert len(relevant_frames(lines, None)) == 3


class TestFingerprint:
    def test_type_name(self):
        assert exception_type_name(ValueError()) == "ValueError"
        assert exception_type_name(CustomError()) == f"{__name__}.CustomError"

    def test_stable_across_volatile_message_parts(self):
        first = generate_fingerprint(_capture(_lookup_user, 1))
        second = generate_fingerprint(_capture(_lookup_user, 98765))
        assert first == second
        assert len(first) == 64

    def test_line_numbers_do_not_matter(self):
        first = generate_fingerprint(_capture(_two_sites, True))
        second = generate_fingerprint(_capture(_two_sites, False))
        assert first == second

    def test_type_changes_fingerprint(self):
        error = _capture(_lookup_user, 1)
        other = CustomError(str(error))
        assert generate_fingerprint(error) != generate_fingerprint(other)

    def test_explicit_backtrace_is_used(self):
        error = ValueError("x")
        a = generate_fingerprint(error, backtrace=['File "/app/a.py", line 1, in a'])
        b = generate_fingerprint(error, backtrace=['File "/app/b.py", line 1, in b'])
        assert a != b
