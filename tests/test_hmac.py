"""Tests for the canonical message and HMAC primitives."""

import base64

import pytest

from cardhook.common.hmac import (
    HEADER_PREFIX,
    b64decode_strict,
    build_message,
    compute,
    constant_time_equals,
    format_header,
    split_header,
)


class TestBuildMessage:
    """Canonical message construction."""

    def test_concatenates_without_separators(self):
        message = build_message("1700000000", "/transactions/authorizations", b'{"a":1}')
        assert message == b'1700000000/transactions/authorizations{"a":1}'

    def test_missing_body_is_empty(self):
        assert build_message("1", "/x") == b"1/x"
        assert build_message("1", "/x", None) == build_message("1", "/x", b"")

    def test_does_not_trim_or_normalize(self):
        message = build_message(" 17 ", "/Path/ ", b" body\r\n")
        assert message == b" 17 /Path/  body\r\n"

    def test_body_bytes_are_not_reencoded(self):
        body = b"\xff\xfe not utf-8"
        assert build_message("1", "/x", body).endswith(body)

    def test_string_parts_are_utf8(self):
        assert build_message("1", "/café") == b"1/caf\xc3\xa9"

    def test_escaped_header_bytes_are_restored(self):
        endpoint = b"/caf\xe9".decode("utf-8", "surrogateescape")
        assert build_message("1", endpoint) == b"1/caf\xe9"


class TestHeaderFormat:
    """X-Signature header formatting and parsing."""

    def test_golden_vector(self):
        secret = b"a" * 32
        message = build_message(
            "1700000000",
            "/transactions/authorizations",
            b'{"Status":"APPROVED","StatusDetail":"APPROVED","Message":"OK"}',
        )
        assert format_header(compute(secret, message)) == (
            "hmac-sha256 vTEIzPBKxlujwdNdJKocahAl5cTasA01kvpqG3Bb/38="
        )

    def test_compute_is_deterministic(self):
        assert compute(b"k" * 32, b"msg") == compute(b"k" * 32, b"msg")
        assert len(compute(b"k" * 32, b"msg")) == 32

    def test_split_header(self):
        assert split_header("hmac-sha256 abc=") == ("hmac-sha256", "abc=")

    def test_split_header_without_space(self):
        assert split_header("hmac-sha256") == ("hmac-sha256", "")

    def test_prefix_has_trailing_space(self):
        assert HEADER_PREFIX == "hmac-sha256 "


class TestBase64:
    def test_decodes_standard_base64(self):
        assert b64decode_strict(base64.b64encode(b"abc").decode()) == b"abc"

    @pytest.mark.parametrize("value", ["not base64!", "abc", "a$==", "YWJj\n"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            b64decode_strict(value)


class TestConstantTimeEquals:
    def test_equal(self):
        assert constant_time_equals(b"\x00" * 32, b"\x00" * 32) is True

    def test_differs_in_last_byte(self):
        assert constant_time_equals(b"\x00" * 32, b"\x00" * 31 + b"\x01") is False

    def test_different_lengths(self):
        assert constant_time_equals(b"\x00" * 32, b"\x00" * 16) is False
