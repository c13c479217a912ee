from __future__ import annotations

import io
import struct

import pytest

from web_launch.errors import NativeMessagingError, NativeStreamClosed
from web_launch.native_messaging import NativeRequest, read_native_message, write_native_message


class _ChunkedReader(io.RawIOBase):
    """Returns at most one byte per read, like a slow pipe."""

    def __init__(self, data: bytes) -> None:
        self._data = data

    def readable(self) -> bool:
        return True

    def read(self, n: int = -1) -> bytes:
        chunk, self._data = self._data[:1], self._data[1:]
        return chunk


def test_written_frame_is_little_endian_length_prefixed() -> None:
    out = io.BytesIO()
    write_native_message({"status": "ok"}, out)
    raw = out.getvalue()
    assert raw[:4] == struct.pack("<I", len(raw) - 4)
    assert raw[4:] == b'{"status":"ok"}'


def test_reader_tolerates_short_reads() -> None:
    body = b'{"URL":"https://example.test/app.jnlp"}'
    stream = _ChunkedReader(struct.pack("<I", len(body)) + body)
    assert read_native_message(stream) == {"URL": "https://example.test/app.jnlp"}


def test_empty_input_is_a_clean_close() -> None:
    with pytest.raises(NativeStreamClosed):
        read_native_message(io.BytesIO(b""))


@pytest.mark.parametrize(
    ("data", "fragment"),
    [
        (b"\x01", "truncated message header"),
        (struct.pack("<I", 0), "invalid message length"),
        (struct.pack("<I", 9_000_000), "invalid message length"),
        (struct.pack("<I", 4) + b"{}", "truncated message body"),
        (struct.pack("<I", 2) + b"\xff\xfe", "failed to decode"),
    ],
)
def test_framing_errors(data: bytes, fragment: str) -> None:
    with pytest.raises(NativeMessagingError) as excinfo:
        read_native_message(io.BytesIO(data))
    assert not isinstance(excinfo.value, NativeStreamClosed)
    assert fragment in str(excinfo.value)


def test_request_fields_are_case_insensitive_and_optional() -> None:
    assert NativeRequest.from_payload({"Url": "x", "extra": 1}) == NativeRequest(url="x")
    assert NativeRequest.from_payload({"STATUS": "probe", "url": None}) == NativeRequest(status="probe")
    assert NativeRequest.from_payload({}) == NativeRequest()
    with pytest.raises(NativeMessagingError):
        NativeRequest.from_payload({"status": ["probe"]})


def test_write_failure_is_a_messaging_error() -> None:
    out = io.BytesIO()
    out.close()
    with pytest.raises(NativeMessagingError):
        write_native_message({"status": "ok"}, out)
