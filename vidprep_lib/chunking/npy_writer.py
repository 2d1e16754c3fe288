"""Writer for the NumPy ``.npy`` v1.0 array format.

The header is produced by hand so that raw decoder output can be written
without first materialising an ndarray. Layout:

    \\x93NUMPY | 0x01 0x00 | uint16 LE header length | dict literal | spaces

The dict literal plus its space padding is sized so that the complete header,
10 fixed bytes included, is a multiple of 16 bytes.
"""

import struct
from typing import Sequence

MAGIC = b"\x93NUMPY\x01\x00"
ALIGNMENT = 16
PREAMBLE_SIZE = len(MAGIC) + 2


def format_shape(shape: Sequence[int]) -> str:
    """Render a shape as a Python tuple literal, e.g. ``(16, 256, 256, 3)``."""
    dims = ", ".join(str(int(d)) for d in shape)
    if len(shape) == 1:
        return f"({dims},)"
    return f"({dims})"


def create_header(shape: Sequence[int]) -> bytes:
    """Build the complete header of an unsigned 8-bit, C-ordered array.

    Args:
        shape: Array dimensions

    Returns:
        bytes: Magic, version, length field, dict literal and padding

    Raises:
        ValueError: If the dict literal does not fit the 16-bit length field
    """
    header_dict = (
        "{'descr': '<u1', 'fortran_order': False, 'shape': "
        + format_shape(shape)
        + "}"
    ).encode("latin1")
    padding = (ALIGNMENT - (PREAMBLE_SIZE + len(header_dict)) % ALIGNMENT) % ALIGNMENT
    header_len = len(header_dict) + padding
    if header_len > 0xFFFF:
        raise ValueError(f"npy header too long for shape {tuple(shape)}")
    return MAGIC + struct.pack("<H", header_len) + header_dict + b" " * padding


def encode(buffer: bytes, shape: Sequence[int]) -> bytes:
    """Return header and payload as one byte string.

    The payload length is not checked against ``shape``.
    """
    return create_header(shape) + bytes(buffer)


def write_npy(path: str, buffer: bytes, shape: Sequence[int]) -> None:
    """Write ``buffer`` as an array of ``shape`` to ``path`` in a single write."""
    data = encode(buffer, shape)
    with open(path, "wb") as f:
        f.write(data)


def read_header(data: bytes):
    """Parse the shape and header size back out of an encoded array.

    Returns:
        tuple: ``(shape, payload_offset)``

    Raises:
        ValueError: If the magic or the dict literal is malformed
    """
    if data[: len(MAGIC)] != MAGIC:
        raise ValueError("not an npy v1.0 stream")
    (header_len,) = struct.unpack("<H", data[len(MAGIC) : PREAMBLE_SIZE])
    header = data[PREAMBLE_SIZE : PREAMBLE_SIZE + header_len].decode("latin1").strip()
    marker = "'shape': ("
    start = header.find(marker)
    end = header.find(")", start)
    if start < 0 or end < 0:
        raise ValueError(f"malformed npy header: {header!r}")
    dims = header[start + len(marker) : end]
    shape = tuple(int(d) for d in dims.split(",") if d.strip())
    return shape, PREAMBLE_SIZE + header_len
