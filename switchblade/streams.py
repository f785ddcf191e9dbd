"""Demultiplexing of the framed stdout/stderr stream of container logs."""

import enum
import io
import struct

from .errors import SwitchbladeError

_HEADER = struct.Struct(">B3xI")


class StreamType(enum.IntEnum):
    """The stream a log frame belongs to."""

    STDIN = 0
    STDOUT = 1
    STDERR = 2
    SYSTEMERR = 3


def _read_exact(source, size):
    data = bytearray()
    while len(data) < size:
        chunk = source.read(size - len(data))
        if not chunk:
            break
        data += chunk
    return bytes(data)


def _write(writer, payload):
    if isinstance(writer, io.TextIOBase):
        writer.write(payload.decode("utf-8", errors="replace"))
    else:
        writer.write(payload)


def demultiplex(source, stdout, stderr):
    """Copy the frames of *source* to *stdout* and *stderr*.

    *source* is bytes or a readable binary stream of 8-byte-header frames.
    A truncated trailing frame is dropped. Returns the number of payload
    bytes written.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)

    written = 0
    while True:
        header = _read_exact(source, _HEADER.size)
        if len(header) < _HEADER.size:
            return written

        stream, size = _HEADER.unpack(header)
        if stream in (StreamType.STDIN, StreamType.STDOUT):
            target = stdout
        elif stream == StreamType.STDERR:
            target = stderr
        elif stream == StreamType.SYSTEMERR:
            target = None
        else:
            raise SwitchbladeError(f"Unrecognized input header: {stream}")

        payload = _read_exact(source, size)
        if len(payload) < size:
            return written

        if target is None:
            raise SwitchbladeError(
                "error from daemon in stream: "
                + payload.decode("utf-8", errors="replace")
            )

        _write(target, payload)
        written += len(payload)