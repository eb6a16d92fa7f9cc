from collections import Counter
from enum import IntEnum
from typing import NamedTuple

import numpy as np
from PIL import Image

from .errors import ErrorKind, failure, success

# A single token never covers more than this many pixels
MAX_RUN = 128


class Mode(IntEnum):
    RAW = 0
    RLE = 1


class Run(NamedTuple):
    count: int
    color: bytes  # B, G, R


class Literal(NamedTuple):
    count: int
    colors: list  # one B, G, R triplet per pixel


def to_bgr(raster):
    return np.ascontiguousarray(raster[:, :, ::-1])


def from_bgr(bgr):
    return np.ascontiguousarray(bgr[:, :, ::-1])


def load_picture(path):
    """Open any picture Pillow understands as an (h, w, 3) RGB raster."""
    try:
        with Image.open(path) as img:
            return success(np.array(img.convert('RGB'), dtype=np.uint8))
    except OSError as e:
        return failure(ErrorKind.IO_ERROR, str(e))


def save_picture(raster, path):
    try:
        Image.fromarray(raster).save(path)
    except OSError as e:
        return failure(ErrorKind.IO_ERROR, str(e))
    return success(path)


class SplashCodec:
    def __init__(self):
        # Token / fallback counters for the summary
        self.stats = Counter()

    # ---------------------------------------------------------
    # Raw: row-major B, G, R triplets
    # ---------------------------------------------------------
    def encode_raw(self, raster):
        return to_bgr(raster).tobytes()

    def decode_raw(self, data, w, h):
        need = w * h * 3
        if len(data) < need:
            return failure(ErrorKind.TRUNCATED_READ, f"{len(data)} of {need} raw bytes")
        bgr = np.frombuffer(bytes(data[:need]), dtype=np.uint8).reshape((h, w, 3))
        return success(from_bgr(bgr))

    # ---------------------------------------------------------
    # RLE24 Encoder (one token stream per row)
    # ---------------------------------------------------------
    def tokenize_row(self, row):
        """
        row: (w, 3) array of B, G, R pixels.
        A run is opened only for 2+ equal neighbours; everything else
        accumulates into a literal. Both kinds flush at MAX_RUN.
        """
        px = [p.tobytes() for p in row]
        w = len(px)
        literal = []
        i = 0
        while i < w:
            j = i + 1
            while j < w and j - i < MAX_RUN and px[j] == px[i]:
                j += 1

            if j - i > 1:
                if literal:
                    yield Literal(len(literal), literal)
                    literal = []
                yield Run(j - i, px[i])
                i = j
                continue

            literal.append(px[i])
            i += 1
            if len(literal) == MAX_RUN:
                yield Literal(MAX_RUN, literal)
                literal = []

        # Residual (may be a single pixel)
        if literal:
            yield Literal(len(literal), literal)

    def pack_tokens(self, tokens):
        packed = bytearray()
        for t in tokens:
            if isinstance(t, Run):
                # Opcode: 1CCCCCCC (0x80 | count-1) + BGR
                packed.append(0x80 | (t.count - 1))
                packed.extend(t.color)
                self.stats['RUN'] += 1
            else:
                # Opcode: 0CCCCCCC (count-1) + count * BGR
                packed.append(t.count - 1)
                for c in t.colors:
                    packed.extend(c)
                self.stats['LITERAL'] += 1
        return bytes(packed)

    def encode_rle(self, raster):
        data = bytearray()
        for row in to_bgr(raster):
            data.extend(self.pack_tokens(self.tokenize_row(row)))
        return bytes(data)

    # ---------------------------------------------------------
    # RLE24 Decoder
    # ---------------------------------------------------------
    def read_token(self, data, pos):
        """Parse one token at pos. Returns Result((token, next_pos))."""
        if pos >= len(data):
            return failure(ErrorKind.DECODE_ERROR, f"stream ends at {pos}")
        ctrl = data[pos]
        pos += 1
        if ctrl & 0x80:
            count = (ctrl & 0x7F) + 1
            if pos + 3 > len(data):
                return failure(ErrorKind.DECODE_ERROR, f"run truncated at {pos}")
            return success((Run(count, bytes(data[pos:pos + 3])), pos + 3))

        count = ctrl + 1
        end = pos + count * 3
        if end > len(data):
            return failure(ErrorKind.DECODE_ERROR, f"literal truncated at {pos}")
        colors = [bytes(data[k:k + 3]) for k in range(pos, end, 3)]
        return success((Literal(count, colors), end))

    def decode_rle_row(self, data, pos, row):
        """Fill row (w, 3) with B, G, R pixels. Returns Result(next_pos)."""
        w = len(row)
        x = 0
        while x < w:
            res = self.read_token(data, pos)
            if not res.ok:
                return res
            token, pos = res.value
            if x + token.count > w:
                return failure(ErrorKind.DECODE_ERROR, f"token of {token.count} overruns row at x={x}")

            if isinstance(token, Run):
                row[x:x + token.count] = np.frombuffer(token.color, dtype=np.uint8)
                self.stats['RUN'] += 1
            else:
                row[x:x + token.count] = np.frombuffer(b''.join(token.colors), dtype=np.uint8).reshape(-1, 3)
                self.stats['LITERAL'] += 1
            x += token.count
        return success(pos)

    def decode_rle(self, data, w, h):
        data = bytes(data)
        # Smallest possible stream: one full run token per MAX_RUN pixels
        least = h * ((w + MAX_RUN - 1) // MAX_RUN) * 4
        if least > len(data):
            return failure(ErrorKind.DECODE_ERROR, f"{w}x{h} needs at least {least} bytes, got {len(data)}")
        bgr = np.zeros((h, w, 3), dtype=np.uint8)
        pos = 0
        for y in range(h):
            res = self.decode_rle_row(data, pos, bgr[y])
            if not res.ok:
                return failure(res.error.kind, f"row {y}: {res.error.detail}")
            pos = res.value
        return success(from_bgr(bgr))

    # ---------------------------------------------------------
    # Mode dispatch / fallback
    # ---------------------------------------------------------
    def decode(self, data, w, h, mode):
        if mode == Mode.RLE:
            return self.decode_rle(data, w, h)
        if mode == Mode.RAW:
            return self.decode_raw(data, w, h)
        return failure(ErrorKind.INVALID_MODE, f"mode {mode}")

    def encode_best(self, raster):
        # RLE unless it ends up larger than the uncompressed form
        rle = self.encode_rle(raster)
        if len(rle) > raster.shape[0] * raster.shape[1] * 3:
            self.stats['RAW_FALLBACK'] += 1
            return self.encode_raw(raster), Mode.RAW
        self.stats['RLE_BLOCK'] += 1
        return rle, Mode.RLE
