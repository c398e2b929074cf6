"""
Tests for Landscape assembly, grid lookups and world coordinates, plus the
package-level build_landscape/pack_sectors helpers.

Entry containers are plain dicts of entry name -> bytes.

Runs under pytest or standalone: python tests/test_landscape.py
"""

import os
import sys
import traceback

import numpy as np

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from landscape_builder import (Landscape, Sector, build_landscape,
                               pack_sectors, OutOfBounds, SectorNotPopulated)
from landscape_builder.buffer_codec import MAX_TILES


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


def _walled_sector(x, y, plane=0, wall=1, obj=None):
    """Sector with one vertical wall at cell 0 and an optional object."""
    sector = Sector(x, y, plane)
    sector.terrain_height[:] = 20
    sector.terrain_colour[:] = 40
    sector.walls_vertical[0] = wall
    if obj is not None:
        sector.walls_diagonal[1] = obj + 48001
    sector.empty = False
    return sector


def _entries(*sectors):
    """Encode sectors into (land, maps) entry dicts."""
    land, maps = {}, {}
    for sector in sectors:
        entry = sector.entry_name()
        land[entry + '.hei'] = sector.to_hei()
        maps[entry + '.dat'] = sector.to_dat()
        loc = sector.to_loc()
        if loc is not None:
            maps[entry + '.loc'] = loc
    return land, maps


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def test_assemble_single_source():
    land, maps = _entries(_walled_sector(50, 50, obj=12),
                          _walled_sector(52, 40))
    landscape = Landscape()
    landscape.load_free(land, maps)

    assert landscape.assemble() == 2
    assert landscape.max_region_x == 52
    assert landscape.max_region_y == 50

    sector = landscape.get_sector(50, 50, 0)
    assert sector is not None and not sector.members
    assert (sector.terrain_height == 20).all()
    assert sector.tiles[47][1].object_id == 12
    assert landscape.get_sector(51, 50, 0) is None


def test_members_source_overrides_free():
    free = _entries(_walled_sector(50, 50, wall=1))
    members = _entries(_walled_sector(50, 50, wall=2))

    landscape = Landscape()
    landscape.load_free(*free)
    landscape.load_members(*members)
    landscape.assemble()

    sector = landscape.get_sector(50, 50, 0)
    assert sector.members
    assert sector.walls_vertical[0] == 2


def test_members_only_sector_keeps_free_neighbours():
    free = _entries(_walled_sector(50, 50))
    members = _entries(_walled_sector(51, 50))

    landscape = build_landscape(free=free, members=members)
    assert not landscape.get_sector(50, 50, 0).members
    assert landscape.get_sector(51, 50, 0).members


def test_all_zero_sector_not_stored():
    zero_field = bytes([255] * 18 + [146])
    maps = {'m05050.dat': zero_field * 7}
    landscape = Landscape()
    landscape.load_free({}, maps)

    assert landscape.assemble() == 0
    assert landscape.get_sector(50, 50, 0) is None
    assert landscape.max_region_x is None
    assert list(landscape.populated_sectors()) == []


def test_bad_entry_does_not_abort_assembly():
    land, maps = _entries(_walled_sector(50, 50))
    maps['m05151.dat'] = b'\x01'
    landscape = Landscape()
    landscape.load_free(land, maps)

    assert landscape.assemble() == 1
    assert 'm05151' in landscape.errors
    assert landscape.get_sector(50, 50, 0) is not None
    assert landscape.get_sector(51, 51, 0) is None


def test_jm_source():
    sector = _walled_sector(49, 38, plane=3, obj=3)
    landscape = Landscape()
    landscape.load_jm_source({sector.entry_name() + '.jm': sector.to_jm()})
    landscape.assemble()

    loaded = landscape.get_sector(49, 38, 3)
    assert loaded is not None
    assert np.array_equal(loaded.walls_diagonal, sector.walls_diagonal)


def test_jm_cannot_mix_with_classic_sources():
    landscape = Landscape()
    landscape.load_free({}, {})
    try:
        landscape.load_jm_source({})
    except ValueError:
        return
    raise AssertionError("Expected ValueError when mixing source families")


def test_build_landscape_requires_a_source():
    try:
        build_landscape()
    except ValueError:
        return
    raise AssertionError("Expected ValueError without sources")


# ---------------------------------------------------------------------------
# Grid access
# ---------------------------------------------------------------------------

def test_populated_sectors_order_and_restart():
    landscape = Landscape()
    for x, y, plane in ((51, 40, 0), (50, 41, 0), (50, 40, 0), (50, 40, 1)):
        landscape.set_sector(_walled_sector(x, y, plane))

    first = [(s.plane, s.x, s.y) for s in landscape.populated_sectors()]
    assert first == [(0, 50, 40), (0, 50, 41), (0, 51, 40), (1, 50, 40)], \
        first
    second = [(s.plane, s.x, s.y) for s in landscape.populated_sectors()]
    assert first == second


def test_neighbours_of():
    landscape = Landscape()
    centre = _walled_sector(50, 50)
    north = _walled_sector(50, 49)
    east = _walled_sector(49, 50)
    for sector in (centre, north, east):
        landscape.set_sector(sector)

    assert landscape.neighbours_of(50, 50, 0) == (north, east, None, None)

    # west of the last column is outside the grid
    landscape.set_sector(_walled_sector(64, 55))
    assert landscape.neighbours_of(64, 55, 0) == (None, None, None, None)


def test_get_sector_out_of_bounds():
    landscape = Landscape()
    for args in ((65, 0, 0), (0, 56, 0), (0, 0, 4), (-1, 0, 0)):
        try:
            landscape.get_sector(*args)
        except OutOfBounds:
            continue
        raise AssertionError("Expected OutOfBounds for {}".format(args))


# ---------------------------------------------------------------------------
# World coordinates
# ---------------------------------------------------------------------------

def test_world_coordinates_invert():
    landscape = Landscape()
    for plane in (0, 1):
        sector = _walled_sector(50, 50, plane)
        sector.populate_tiles()
        landscape.set_sector(sector)

        for column in sector.tiles:
            for tile in column:
                world_x, world_y = tile.to_coordinates()
                found = landscape.tile_at_world_coords(world_x, world_y)
                assert found is tile, "{!r} -> {!r}".format(tile, found)


def test_world_coordinates_unpopulated():
    landscape = Landscape()
    try:
        landscape.tile_at_world_coords(0, 0)
    except SectorNotPopulated:
        pass
    else:
        raise AssertionError("Expected SectorNotPopulated")

    for coords in ((-1, 0), (48 * 20, 0)):
        try:
            landscape.tile_at_world_coords(*coords)
        except OutOfBounds:
            continue
        raise AssertionError("Expected OutOfBounds for {}".format(coords))


# ---------------------------------------------------------------------------
# Packing
# ---------------------------------------------------------------------------

def test_pack_sectors_routes_entries():
    ground = _walled_sector(50, 50, obj=5)
    upstairs = _walled_sector(50, 50, plane=1)
    members = _walled_sector(60, 45)
    members.members = True

    packed = pack_sectors([ground, upstairs, members])

    assert sorted(packed['land']) == ['m05050.hei']
    assert sorted(packed['maps']) == ['m05050.dat', 'm05050.loc',
                                      'm15050.dat']
    assert sorted(packed['land_members']) == ['m06045.hei']
    assert sorted(packed['maps_members']) == ['m06045.dat']


def test_pack_then_assemble():
    sectors = [_walled_sector(50, 50, obj=5), _walled_sector(51, 50)]
    packed = pack_sectors(sectors)
    landscape = build_landscape(free=(packed['land'], packed['maps']))

    assert [s.entry_name() for s in landscape.populated_sectors()] == \
        ['m05050', 'm05150']
    assert landscape.get_sector(50, 50, 0).walls_diagonal[1] == 48006


def test_repr():
    assert repr(Landscape()) == '<Landscape 65x56x4>'
    assert repr(Sector(50, 50, 0)) == '<Sector m05050 48x48>'
    assert MAX_TILES == 2304


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    print("=" * 70)
    print("landscape_builder landscape tests")
    print("=" * 70)

    for name, fn in sorted(globals().items()):
        if name.startswith('test_') and callable(fn):
            _test(name, fn)

    print("\nResults: {} passed, {} failed".format(_PASSED, _FAILED))
    return 0 if _FAILED == 0 else 1


if __name__ == '__main__':
    sys.exit(main())
