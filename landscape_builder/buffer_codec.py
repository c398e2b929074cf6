"""
Field codecs for the legacy sector entry formats.

Every field of a sector is a flat buffer of 2304 cells (one 48x48 grid,
index = x * 48 + y).  The entry formats store these buffers using one of
four fixed schemes:

  repeat RLE  - byte < 128 is a literal and becomes the "last value",
                byte >= 128 repeats the last value (byte - 128) times.
  zero RLE    - byte < 128 is a literal, byte >= 128 is (byte - 128) zeros.
  skip RLE    - byte < 128 is a literal, byte >= 128 leaves (byte - 128)
                cells untouched.  Used for layers painted over other data.
  delta       - first value, then differences, all modulo 256.

Height and colour additionally pass through a 7-bit delta "scramble" that
halves the 0-255 range into 0-127 before run-length compression.

Decoders take ``(data, offset)`` and return ``(values, new_offset)`` so that
consecutive fields of one record can be read back-to-back.  Any running
state (last literal, accumulator) is local to the call.
"""

import logging

import numpy as np

from .errors import TruncatedInput, MalformedArchiveEntry

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SECTOR_WIDTH = 48
SECTOR_HEIGHT = 48
MAX_TILES = SECTOR_WIDTH * SECTOR_HEIGHT  # 2304

HEIGHT_SEED = 64
COLOUR_SEED = 35

_TOKEN_BASE = 128
_MAX_RUN = 255 - _TOKEN_BASE              # 127 cells per run token


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _next_byte(data, offset, produced, count):
    """Fetch data[offset] or raise TruncatedInput if the record ran out."""
    if offset >= len(data):
        raise TruncatedInput(
            "Record ended at byte {} after {} of {} cells".format(
                offset, produced, count))
    return data[offset] & 0xFF


def _check_run(tile, run, count, offset):
    if tile + run > count:
        raise MalformedArchiveEntry(
            "Run token at byte {} overruns field: {} + {} > {} cells".format(
                offset, tile, run, count))


def _row_major(values):
    """Reorder a column-major (x-slow) buffer into y-outer, x-inner order."""
    return np.asarray(values).reshape(SECTOR_WIDTH, SECTOR_HEIGHT).T.ravel()


def _column_major(values):
    """Inverse of _row_major."""
    return np.asarray(values).reshape(SECTOR_HEIGHT, SECTOR_WIDTH).T.ravel()


# ---------------------------------------------------------------------------
# Repeat-last RLE
# ---------------------------------------------------------------------------

def decode_repeat_rle(data, offset=0, count=MAX_TILES):
    """
    Decode a literal/repeat-last run-length field.

    Args:
        data: bytes-like record.
        offset: Byte offset where the field starts.
        count: Number of cells to produce (2304 for a sector field).

    Returns:
        tuple: (numpy uint8 array of ``count`` cells, offset after the field)

    Raises:
        TruncatedInput: If the record ends before ``count`` cells.
        MalformedArchiveEntry: If a repeat token overshoots ``count``.
    """
    out = np.zeros(count, dtype=np.uint8)
    last = 0
    tile = 0

    while tile < count:
        val = _next_byte(data, offset, tile, count)
        offset += 1

        if val < _TOKEN_BASE:
            out[tile] = val
            last = val
            tile += 1
        else:
            run = val - _TOKEN_BASE
            _check_run(tile, run, count, offset - 1)
            out[tile:tile + run] = last
            tile += run

    return out, offset


def encode_repeat_rle(values, last=0):
    """
    Compress a field with the literal/repeat-last scheme.

    A literal is written whenever the value differs from the previous one;
    repeats are folded into tokens of at most 127 cells.  ``last`` is the
    value the decoder assumes before the first literal (0).

    Raises:
        ValueError: If a value is not in 0..127.
    """
    out = bytearray()
    run = 0

    for val in (int(v) for v in values):
        if not 0 <= val < _TOKEN_BASE:
            raise ValueError(
                "Value {} cannot be stored as a 7-bit literal".format(val))

        if val != last:
            if run:
                out.append(_TOKEN_BASE + run)
                run = 0
            out.append(val)
            last = val
            continue

        run += 1
        if run == _MAX_RUN:
            out.append(_TOKEN_BASE + run)
            run = 0

    if run:
        out.append(_TOKEN_BASE + run)

    return bytes(out)


# ---------------------------------------------------------------------------
# Zero-run RLE
# ---------------------------------------------------------------------------

def decode_zero_rle(data, offset=0, count=MAX_TILES):
    """
    Decode a field where only runs of zero are compressed.

    Returns:
        tuple: (numpy uint8 array of ``count`` cells, offset after the field)

    Raises:
        TruncatedInput: If the record ends before ``count`` cells.
        MalformedArchiveEntry: If a zero-run token overshoots ``count``.
    """
    out = np.zeros(count, dtype=np.uint8)
    tile = 0

    while tile < count:
        val = _next_byte(data, offset, tile, count)
        offset += 1

        if val < _TOKEN_BASE:
            out[tile] = val
            tile += 1
        else:
            run = val - _TOKEN_BASE
            _check_run(tile, run, count, offset - 1)
            tile += run

    return out, offset


def encode_zero_rle(values):
    """
    Compress a field, folding runs of zero into 128 + length tokens.

    Raises:
        ValueError: If a non-zero value is not in 1..127.
    """
    out = bytearray()
    run = 0

    for val in (int(v) for v in values):
        if val == 0:
            run += 1
            if run == _MAX_RUN:
                out.append(_TOKEN_BASE + run)
                run = 0
            continue

        if not 0 < val < _TOKEN_BASE:
            raise ValueError(
                "Value {} cannot be stored as a 7-bit literal".format(val))
        if run:
            out.append(_TOKEN_BASE + run)
            run = 0
        out.append(val)

    if run:
        out.append(_TOKEN_BASE + run)

    return bytes(out)


# ---------------------------------------------------------------------------
# Skip RLE (overlay layers)
# ---------------------------------------------------------------------------

def decode_skip_rle(data, offset=0, count=MAX_TILES, allow_short=False):
    """
    Decode a sparse overlay layer into (cell, literal) placements.

    Skipped cells are not reported, so callers can paint the literals over
    a buffer that already holds data from another field.

    Args:
        data: bytes-like record.
        offset: Byte offset where the layer starts.
        count: Number of cells the layer covers.
        allow_short: If True, running out of input ends the layer and the
            remaining cells count as skipped.

    Returns:
        tuple: (list of (cell, value) tuples, offset after the layer)

    Raises:
        TruncatedInput: If the record ends early and ``allow_short`` is False.
        MalformedArchiveEntry: If a skip token overshoots ``count``.
    """
    placements = []
    tile = 0

    while tile < count:
        if allow_short and offset >= len(data):
            break
        val = _next_byte(data, offset, tile, count)
        offset += 1

        if val < _TOKEN_BASE:
            placements.append((tile, val))
            tile += 1
        else:
            run = val - _TOKEN_BASE
            _check_run(tile, run, count, offset - 1)
            tile += run

    return placements, offset


# ---------------------------------------------------------------------------
# Height / colour scrambling
# ---------------------------------------------------------------------------

def unscramble(values, seed):
    """
    Undo the 7-bit delta encoding used by height and colour fields.

    Walks the buffer with y outer and x inner, keeping an accumulator
    ``acc = value + (acc & 0x7F)`` seeded with ``seed``, and emits
    ``(acc * 2) & 0xFF``.  Only the low 7 bits of the accumulator survive
    each step, so the walk reduces to a cumulative sum modulo 128.

    Args:
        values: 2304 decoded 7-bit values in storage (x-slow) order.
        seed: HEIGHT_SEED or COLOUR_SEED.

    Returns:
        numpy uint8 array in storage order.
    """
    ordered = _row_major(values).astype(np.int64)
    acc = (np.cumsum(ordered) + (seed & 0x7F)) & 0x7F
    return _column_major((acc * 2) & 0xFF).astype(np.uint8)


def scramble(values, seed):
    """
    Inverse of unscramble(): halve each value, then delta-encode it.

    Odd values lose their low bit; values read from an entry are always
    even, so parse -> scramble -> unscramble is lossless.

    Returns:
        numpy uint8 array of 7-bit values in storage order.
    """
    halves = (_row_major(values).astype(np.int64) & 0xFF) >> 1
    prev = np.concatenate(([seed & 0x7F], halves[:-1]))
    return _column_major((halves - prev) & 0x7F).astype(np.uint8)


# ---------------------------------------------------------------------------
# Delta code
# ---------------------------------------------------------------------------

def decode_delta(data, offset=0, count=MAX_TILES):
    """
    Decode ``count`` delta bytes into a running sum modulo 256.

    Returns:
        tuple: (numpy uint8 array, offset after the field)

    Raises:
        TruncatedInput: If fewer than ``count`` bytes remain.
    """
    end = offset + count
    if end > len(data):
        raise TruncatedInput(
            "Delta field needs {} bytes at offset {}, record has {}".format(
                count, offset, len(data)))
    deltas = np.frombuffer(bytes(data[offset:end]), dtype=np.uint8)
    return (np.cumsum(deltas, dtype=np.int64) & 0xFF).astype(np.uint8), end


def encode_delta(values):
    """Encode a buffer as its first value followed by differences mod 256."""
    vals = np.asarray(values, dtype=np.int64) & 0xFF
    if vals.size == 0:
        return b''
    deltas = np.diff(vals, prepend=0) & 0xFF
    return deltas.astype(np.uint8).tobytes()


def read_flat(data, offset=0, count=MAX_TILES):
    """
    Read ``count`` uncompressed bytes.

    Returns:
        tuple: (numpy uint8 array, offset after the field)

    Raises:
        TruncatedInput: If fewer than ``count`` bytes remain.
    """
    end = offset + count
    if end > len(data):
        raise TruncatedInput(
            "Flat field needs {} bytes at offset {}, record has {}".format(
                count, offset, len(data)))
    return np.frombuffer(bytes(data[offset:end]), dtype=np.uint8).copy(), end
