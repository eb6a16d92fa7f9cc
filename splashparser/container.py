"""Splash image container: page scanner, block headers and bitmap regions.

Layout of one block (little-endian, offsets from the header page):

    0    'SPLASH!!'                 8
    8    width                      4
    12   height                     4
    16   mode (0=raw, 1=RLE24)      4
    20   payload pages              4
    512  payload (pages * 512)

Every operation takes explicit byte offsets; the file cursor is never
assumed to be anywhere in particular between calls.
"""
import io
import struct
from typing import NamedTuple

from .codec import Mode, SplashCodec
from .errors import ErrorKind, Failure, failure, success

PAGE_SIZE = 512
SPLASH_MARKER = b"SPLASH!!"

# Header: [Marker(8) | Width(4) | Height(4) | Mode(4) | Pages(4)] = 24 bytes
HEADER_FMT = "<8sIIII"
HEADER_LEN = struct.calcsize(HEADER_FMT)


class SplashHeader(NamedTuple):
    width: int
    height: int
    mode: int
    pages: int

    @property
    def valid(self) -> bool:
        return self.mode in (Mode.RAW, Mode.RLE)

    @property
    def capacity(self) -> int:
        return self.pages * PAGE_SIZE


class Block(NamedTuple):
    position: int
    header: SplashHeader
    index: int


def pages_for(length: int) -> int:
    return (length + PAGE_SIZE - 1) // PAGE_SIZE


# ---------------------------------------------------------
# Header page
# ---------------------------------------------------------
def parse_header(page: bytes) -> SplashHeader:
    _, width, height, mode, pages = struct.unpack_from(HEADER_FMT, page)
    return SplashHeader(width, height, mode, pages)


def build_header(header: SplashHeader) -> bytes:
    page = bytearray(PAGE_SIZE)
    struct.pack_into(HEADER_FMT, page, 0, SPLASH_MARKER,
                     header.width, header.height, int(header.mode), header.pages)
    return bytes(page)


def read_header(fp, position: int):
    try:
        fp.seek(position)
        page = fp.read(PAGE_SIZE)
    except OSError as e:
        return failure(ErrorKind.IO_ERROR, str(e))
    if len(page) < PAGE_SIZE:
        return failure(ErrorKind.TRUNCATED_READ, f"header page at 0x{position:08x}")
    return success(parse_header(page))


# ---------------------------------------------------------
# Scanner
# ---------------------------------------------------------
def seek_splash(fp, start: int):
    """Return the offset of the next page starting with the marker, or None.

    Probes start, start + 512, start + 1024, ... and stops at the first
    probe that cannot read a full marker.
    """
    pos = start
    while True:
        fp.seek(pos)
        probe = fp.read(len(SPLASH_MARKER))
        if len(probe) < len(SPLASH_MARKER):
            return None
        if probe == SPLASH_MARKER:
            return pos
        pos += PAGE_SIZE


# ---------------------------------------------------------
# Bitmap region
# ---------------------------------------------------------
def read_bitmap(fp, origin: int, pages: int):
    length = pages * PAGE_SIZE
    try:
        end = fp.seek(0, io.SEEK_END)
        if origin + length > end:
            return failure(ErrorKind.TRUNCATED_READ,
                           f"bitmap needs {length} bytes at 0x{origin:08x}, {max(end - origin, 0)} available")
        fp.seek(origin)
        data = fp.read(length)
    except OSError as e:
        return failure(ErrorKind.IO_ERROR, str(e))
    if len(data) < length:
        return failure(ErrorKind.TRUNCATED_READ, f"read {len(data)} of {length} bytes")
    return success(data)


def write_bitmap(fp, payload: bytes, origin: int, old_pages: int):
    """Overwrite the payload region at origin.

    Growing past the old reservation is only allowed into bytes that are
    all zero and present in the file. The check completes before anything
    is written. Shrinking zero-fills the tail of the old reservation.
    """
    old_len = old_pages * PAGE_SIZE
    try:
        if len(payload) > old_len:
            need = len(payload) - old_len
            fp.seek(origin + old_len)
            extension = fp.read(need)
            if len(extension) < need:
                return failure(ErrorKind.CAPACITY_ERROR,
                               f"needs {need} bytes past the block, file has {len(extension)}")
            if extension.count(0) != need:
                return failure(ErrorKind.CAPACITY_ERROR,
                               f"non-zero data within {need} bytes past the block")
        else:
            fp.seek(origin + len(payload))
            fp.write(bytes(old_len - len(payload)))

        fp.seek(origin)
        fp.write(payload)
    except OSError as e:
        return failure(ErrorKind.IO_ERROR, str(e))
    return success()


# ---------------------------------------------------------
# Block walker
# ---------------------------------------------------------
class SplashImage:
    """One pass over an open splash image (binary, seekable file object).

    skip_payload=False resumes each scan one page past the header page,
    which is what older tools did; payload pages are then probed for the
    marker as well.
    """

    def __init__(self, fp, codec=None, skip_payload=True):
        self.fp = fp
        self.codec = codec if codec is not None else SplashCodec()
        self.skip_payload = skip_payload
        # position -> pages reserved after a substitution
        self.reserved = {}

    def blocks(self):
        """Yield (Block, None) for each usable block, (None, Failure) otherwise."""
        seek = 0
        index = -1
        while True:
            pos = seek_splash(self.fp, seek)
            if pos is None:
                return
            seek = pos + PAGE_SIZE

            res = read_header(self.fp, pos)
            if not res.ok:
                yield None, res.error
                continue
            header = res.value
            if not header.valid:
                yield None, Failure(ErrorKind.INVALID_MODE, f"mode {header.mode} at 0x{pos:08x}")
                continue

            index += 1
            yield Block(pos, header, index), None

            if self.skip_payload:
                seek = pos + PAGE_SIZE + self.reserved.get(pos, header.pages) * PAGE_SIZE

    def extract(self, block: Block):
        h = block.header
        if h.width == 0 or h.height == 0:
            return failure(ErrorKind.DECODE_ERROR, f"empty bitmap {h.width}x{h.height}")
        res = read_bitmap(self.fp, block.position + PAGE_SIZE, h.pages)
        if not res.ok:
            return res
        return self.codec.decode(res.value, h.width, h.height, h.mode)

    def substitute(self, block: Block, raster):
        """Replace the block's bitmap with raster. Returns Result(new header)."""
        h = block.header
        rh, rw = raster.shape[:2]
        if (rw, rh) != (h.width, h.height):
            return failure(ErrorKind.DIMENSION_MISMATCH, f"{rw}x{rh} != {h.width}x{h.height}")

        payload, mode = self.codec.encode_best(raster)
        res = write_bitmap(self.fp, payload, block.position + PAGE_SIZE, h.pages)
        if not res.ok:
            return res

        new = h._replace(mode=mode, pages=pages_for(len(payload)))
        try:
            self.fp.seek(block.position)
            self.fp.write(build_header(new))
        except OSError as e:
            return failure(ErrorKind.IO_ERROR, str(e))
        self.reserved[block.position] = max(h.pages, new.pages)
        return success(new)

    def flush(self):
        self.fp.flush()
