"""
Blosc decompression for Boss cutout payloads.

The Boss returns `application/blosc` bodies: a self-describing buffer
whose 16-byte header records the uncompressed size, the block size and
the compressed size. The output buffer is sized from that header.

Header layout (little-endian):
    uint8   version
    uint8   versionlz
    uint8   flags
    uint8   typesize
    uint32  nbytes      uncompressed size
    uint32  blocksize
    uint32  cbytes      compressed size, header included
"""

import logging
import re
import struct

from numcodecs import Blosc

from ..common.errors import DecompressionError

logger = logging.getLogger(__name__)

BLOSC_HEADER_LENGTH = 16

_ERROR_CODE = re.compile(r"(-?\d+)\s*$")

# decoding reads compressor settings from each buffer's header
_CODEC = Blosc()


def buffer_sizes(compressed: bytes):
    """Return (nbytes, cbytes, blocksize) from a blosc header."""
    if len(compressed) < BLOSC_HEADER_LENGTH:
        raise DecompressionError(-1, f"buffer of {len(compressed)} bytes is shorter than a blosc header")
    nbytes, blocksize, cbytes = struct.unpack_from('<III', compressed, 4)
    if cbytes < BLOSC_HEADER_LENGTH or cbytes > len(compressed):
        raise DecompressionError(
            -1, f"header claims {cbytes} compressed bytes but {len(compressed)} were received"
        )
    return nbytes, cbytes, blocksize


def decompress(compressed: bytes) -> bytes:
    """
    Decompress a blosc buffer into an exactly-sized output buffer.

    Args:
        compressed: Raw response body from a cutout request

    Returns:
        Uncompressed bytes

    Raises:
        DecompressionError: Header is unreadable or the codec reports a failure
    """
    nbytes, cbytes, blocksize = buffer_sizes(compressed)
    logger.debug(f"blosc buffer: nbytes={nbytes} cbytes={cbytes} blocksize={blocksize}")

    uncompressed = bytearray(nbytes)
    if nbytes == 0:
        return bytes(uncompressed)

    try:
        _CODEC.decode(compressed, out=uncompressed)
    except RuntimeError as e:
        # numcodecs reports the negative blosc return value at the end of the message
        match = _ERROR_CODE.search(str(e))
        code = int(match.group(1)) if match else -1
        raise DecompressionError(code, str(e)) from e
    except (TypeError, ValueError) as e:
        raise DecompressionError(-1, str(e)) from e

    return bytes(uncompressed)
