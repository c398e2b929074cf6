"""
Tests for the tile model: packed diagonal bands, buffer exchange and
world coordinates.

Runs under pytest or standalone: python tests/test_tile.py
"""

import os
import sys
import logging
import traceback

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from landscape_builder.errors import AmbiguousPackedValue
from landscape_builder.sector import Sector
from landscape_builder.tile import (
    Tile, Band, DiagonalDirection, DiagonalWall, ObjectRef, ItemRef, NpcRef,
    decode_packed, encode_packed,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_PASSED = 0
_FAILED = 0
_ERRORS = []


def _test(name, fn):
    """Run a test function, track pass/fail."""
    global _PASSED, _FAILED
    try:
        fn()
        _PASSED += 1
        print("  PASS  {}".format(name))
    except Exception as e:
        _FAILED += 1
        _ERRORS.append((name, e))
        print("  FAIL  {} -- {}".format(name, e))
        traceback.print_exc()


# ---------------------------------------------------------------------------
# Packed bands
# ---------------------------------------------------------------------------

def test_object_band_decode():
    decoration = decode_packed(48050)
    assert decoration == ObjectRef(49), decoration
    assert encode_packed(decoration) == 48050


def test_band_boundaries():
    cases = [
        (0, None),
        (1, DiagonalWall('/', 1)),
        (12000, DiagonalWall('/', 12000)),
        (12001, DiagonalWall('\\', 1)),
        (24001, NpcRef(0)),
        (36001, ItemRef(0)),
        (48001, ObjectRef(0)),
    ]
    for value, expected in cases:
        got = decode_packed(value)
        assert got == expected, "{} -> {!r}, expected {!r}".format(
            value, got, expected)


def test_band_roundtrip_full_range():
    for value in range(1, 49000):
        decoration = decode_packed(value)
        assert decoration is not None, value
        assert encode_packed(decoration) == value, value


def test_band_enum_values():
    assert Band.NW_SE == 12000
    assert Band.NPC == 24000
    assert Band.ITEM == 36000
    assert Band.OBJECT == 48000


def test_negative_value_is_ignored_with_warning():
    records = []

    class _Capture(logging.Handler):
        def emit(self, record):
            records.append(record)

    logger = logging.getLogger('landscape_builder.tile')
    handler = _Capture(level=logging.WARNING)
    logger.addHandler(handler)
    try:
        assert decode_packed(-5) is None
    finally:
        logger.removeHandler(handler)
    assert records, "Expected a warning for an out-of-band value"


def test_negative_value_strict():
    try:
        decode_packed(-5, strict=True)
    except AmbiguousPackedValue:
        return
    raise AssertionError("Expected AmbiguousPackedValue")


# ---------------------------------------------------------------------------
# Tile fields
# ---------------------------------------------------------------------------

def test_decoration_priority():
    tile = Tile(None, 0, 0,
                wall={'diagonal': {'direction': '/', 'overlay': 3}},
                object_id=49, item_id=2, npc_id=1)
    assert tile.object_id == 49
    assert tile.item_id is None
    assert tile.npc_id is None
    assert tile.diagonal is None

    tile = Tile(None, 0, 0,
                wall={'diagonal': {'direction': '\\', 'overlay': 3}},
                npc_id=1)
    assert tile.npc_id == 1
    assert tile.diagonal is None


def test_object_tile_encodes_band_value():
    sector = Sector(50, 50, 0)
    tile = Tile(sector, 4, 9, object_id=49)
    tile.to_buffers()
    assert sector.walls_diagonal[4 * 48 + 9] == 48050


def test_populate_reads_buffers():
    sector = Sector(50, 50, 0)
    index = 3 * 48 + 7
    sector.terrain_height[index] = 200
    sector.terrain_colour[index] = 17
    sector.tile_direction[index] = 2
    sector.tile_decoration[index] = 5
    sector.walls_vertical[index] = 9
    sector.walls_roof[index] = 0
    sector.walls_diagonal[index] = 12005

    tile = Tile(sector, 3, 7)
    tile.populate()
    assert tile.elevation == 200
    assert tile.colour == 17
    assert tile.direction == 2
    assert tile.overlay == 5
    assert tile.vertical == 9
    assert tile.horizontal is None
    assert tile.roof is None
    assert tile.diagonal.direction is DiagonalDirection.BACKSLASH
    assert tile.diagonal.overlay == 5
    assert tile.object_id is None


def test_to_coordinates():
    sector = Sector(50, 50, 0)
    assert Tile(sector, 0, 0).to_coordinates() == (96, 624)
    assert Tile(sector, 47, 47).to_coordinates() == (143, 671)

    upstairs = Sector(50, 50, 1)
    assert Tile(upstairs, 0, 0).to_coordinates() == (96, 624 + 944)

    tile = Tile(upstairs, 5, 7)
    assert tile.get_game_coords() == tile.to_coordinates() == (101, 1575)


def test_dict_roundtrip():
    sector = Sector(50, 50, 0)
    tile = Tile(sector, 1, 2, colour=3, elevation=4, direction=1, overlay=6,
                wall={'vertical': 7, 'roof': 2,
                      'diagonal': {'direction': '/', 'overlay': 8}})
    data = tile.to_dict()
    assert data['wall']['diagonal'] == {'direction': '/', 'overlay': 8}
    assert data['objectId'] is None
    assert Tile.from_dict(sector, 1, 2, data) == tile


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    print("=" * 70)
    print("landscape_builder tile tests")
    print("=" * 70)

    for name, fn in sorted(globals().items()):
        if name.startswith('test_') and callable(fn):
            _test(name, fn)

    print("\nResults: {} passed, {} failed".format(_PASSED, _FAILED))
    return 0 if _FAILED == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
