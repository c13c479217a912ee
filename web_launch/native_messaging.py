"""Chrome/Firefox native messaging framing (length-prefixed JSON over stdio)."""

from __future__ import annotations

import json
import os
import struct
import sys
from dataclasses import dataclass
from typing import IO, Any

from .errors import NativeMessagingError, NativeStreamClosed

# Browsers cap host->browser messages at 1 MiB; requests we accept are tiny.
_MAX_FRAME_BYTES = 8_000_000
_HEADER = struct.Struct("<I")


@dataclass(frozen=True, slots=True)
class NativeRequest:
    status: str = ""
    url: str = ""

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> NativeRequest:
        # Field names match case-insensitively ("URL", "url", "Url").
        fields: dict[str, str] = {}
        for raw_key, value in payload.items():
            key = str(raw_key).lower()
            if key not in {"status", "url"}:
                continue
            if value is None:
                continue
            if not isinstance(value, str):
                raise NativeMessagingError(f"field {raw_key!r} must be a string, got {type(value).__name__}")
            fields[key] = value
        return cls(status=fields.get("status", ""), url=fields.get("url", ""))


def _read_exact(stream: IO[bytes], n: int) -> bytes:
    buf = bytearray()
    while len(buf) < n:
        chunk = stream.read(n - len(buf))
        if not chunk:
            break
        buf.extend(chunk)
    return bytes(buf)


def read_native_message(stream: IO[bytes] | None = None) -> dict[str, Any]:
    """Read one frame.

    Raises NativeStreamClosed on a clean end-of-input before any byte, and
    NativeMessagingError for a truncated, oversized or undecodable frame.
    """
    stream = stream if stream is not None else sys.stdin.buffer
    header = _read_exact(stream, _HEADER.size)
    if not header:
        raise NativeStreamClosed("input stream closed before a message was received")
    if len(header) < _HEADER.size:
        raise NativeMessagingError(f"truncated message header ({len(header)} of {_HEADER.size} bytes)")
    (length,) = _HEADER.unpack(header)
    if length <= 0 or length > _MAX_FRAME_BYTES:
        raise NativeMessagingError(f"invalid message length: {length}")
    raw = _read_exact(stream, int(length))
    if len(raw) < length:
        raise NativeMessagingError(f"truncated message body ({len(raw)} of {length} bytes)")
    try:
        obj = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise NativeMessagingError(f"failed to decode message: {exc}") from exc
    if not isinstance(obj, dict):
        raise NativeMessagingError(f"message must be a JSON object, got {type(obj).__name__}")
    return obj


def write_native_message(msg: dict[str, Any], stream: IO[bytes] | None = None) -> None:
    """Write one frame and flush."""
    stream = stream if stream is not None else sys.stdout.buffer
    raw = json.dumps(msg, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    try:
        stream.write(_HEADER.pack(len(raw)))
        stream.write(raw)
        stream.flush()
    except (OSError, ValueError) as exc:
        raise NativeMessagingError(f"failed to write message: {exc}") from exc


def set_binary_stdio() -> None:
    """Windows translates \\n in text-mode handles, which corrupts the length prefix."""
    if os.name != "nt":
        return
    import msvcrt  # type: ignore[import-not-found]

    msvcrt.setmode(sys.stdin.fileno(), os.O_BINARY)
    msvcrt.setmode(sys.stdout.fileno(), os.O_BINARY)


__all__ = [
    "NativeRequest",
    "read_native_message",
    "set_binary_stdio",
    "write_native_message",
]
