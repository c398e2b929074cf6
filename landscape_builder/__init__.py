"""
Landscape Builder - terrain archive codec for a legacy game client world map

Provides a high-level API for decoding the client's sector entries
(.hei, .dat, .loc, .jm) into one addressable world grid of 48x48 tile
sectors, and for re-encoding edited sectors back into the same entries.

Reading and writing the keyed entry containers themselves is left to the
caller: every API here takes or returns plain ``{entry name: bytes}``
mappings.
"""

import logging

from .errors import (LandscapeError, TruncatedInput, MalformedArchiveEntry,
                     AmbiguousPackedValue, OutOfBounds, SectorNotPopulated)
from .buffer_codec import SECTOR_WIDTH, SECTOR_HEIGHT, MAX_TILES
from .tile import (Tile, Band, DiagonalDirection, DiagonalWall, ObjectRef,
                   ItemRef, NpcRef, decode_packed, encode_packed)
from .sector import Sector, HEI_PLANES
from .landscape import (Landscape, ArchiveSource, MAX_X_SECTORS,
                        MAX_Y_SECTORS, MAX_PLANES, MIN_REGION_X, MIN_REGION_Y)
from .sector_json import sector_to_json, sector_from_json, build_grid_visual

log = logging.getLogger(__name__)


def build_landscape(free=None, members=None, jm=None):
    """
    High-level API to assemble a Landscape in one call.

    Args:
        free: Optional (land_entries, map_entries) pair of free content.
        members: Optional (land_entries, map_entries) pair of members
                 content, applied after ``free``.
        jm: Optional container of .jm entries.  Cannot be combined with
            ``free`` or ``members``.

    Returns:
        Landscape: assembled grid.

    Raises:
        ValueError: If no source is given or .jm is mixed with the others.
    """
    if free is None and members is None and jm is None:
        raise ValueError("Provide at least one land/maps pair or a .jm source")

    landscape = Landscape()

    if jm is not None:
        landscape.load_jm_source(jm)
    if free is not None:
        landscape.load_free(*free)
    if members is not None:
        landscape.load_members(*members)

    landscape.assemble()
    return landscape


def pack_sectors(sectors):
    """
    Encode sectors into entry mappings for the four archive containers.

    .hei entries are only produced for planes 0 and 3, .loc entries only
    for sectors holding objects.  Members sectors go to the members
    containers.

    Args:
        sectors: Iterable of Sector.

    Returns:
        dict: {
            'land': {name: bytes},
            'maps': {name: bytes},
            'land_members': {name: bytes},
            'maps_members': {name: bytes},
        }
    """
    result = {
        'land': {},
        'maps': {},
        'land_members': {},
        'maps_members': {},
    }

    count = 0
    for sector in sectors:
        entry = sector.entry_name()
        land = result['land_members' if sector.members else 'land']
        maps = result['maps_members' if sector.members else 'maps']

        if sector.plane in HEI_PLANES:
            land[entry + '.hei'] = sector.to_hei()

        maps[entry + '.dat'] = sector.to_dat()

        loc = sector.to_loc()
        if loc is not None:
            maps[entry + '.loc'] = loc

        count += 1

    log.info("Packed %d sectors", count)
    return result
