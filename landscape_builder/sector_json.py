"""
JSON form and text preview of sectors.

The JSON document of a sector is ``{x, y, plane, members, tiles}`` where
``tiles`` is the 48x48 tile matrix in display order (x reversed), each tile
in Tile.to_dict() form.  Loading a document rebuilds every buffer, so the
result can be re-packed with the to_* entry encoders.
"""

import json
import logging

from .buffer_codec import SECTOR_WIDTH, SECTOR_HEIGHT
from .sector import Sector

log = logging.getLogger(__name__)


# Characters for numeric fields, darkest to brightest
_RAMP = ' .:-=+*#%@'

GRID_FIELDS = ('walls', 'elevation', 'colour', 'overlay')


def sector_to_json(sector, pretty=False):
    """Serialise a sector to a JSON string."""
    return json.dumps(sector.to_dict(), indent=4 if pretty else None)


def sector_from_json(text):
    """Build a Sector from a JSON string written by sector_to_json()."""
    data = json.loads(text)
    for key in ('x', 'y', 'plane', 'tiles'):
        if key not in data:
            raise ValueError("Sector JSON is missing '{}'".format(key))
    sector = Sector.from_dict(data)
    log.debug("Loaded %r from JSON (empty=%s)", sector, sector.empty)
    return sector


def _wall_char(tile):
    if tile.object_id is not None:
        return 'o'
    if tile.item_id is not None:
        return 'i'
    if tile.npc_id is not None:
        return 'n'
    if tile.diagonal is not None:
        return tile.diagonal.direction.value
    if tile.vertical and tile.horizontal:
        return '+'
    if tile.vertical:
        return '|'
    if tile.horizontal:
        return '-'
    if tile.roof:
        return '^'
    return '.'


def _ramp_char(value):
    return _RAMP[(value & 0xFF) * len(_RAMP) // 256]


def build_grid_visual(sector, field='walls'):
    """
    Build a 48-line text preview of a sector.

    Each line is one row (y), columns follow the display order of the tile
    matrix.  ``walls`` marks walls and placements (``o`` object, ``i`` item,
    ``n`` npc, ``/`` and ``\\`` diagonals, ``|``/``-``/``+`` walls, ``^``
    roof); the numeric fields use a brightness ramp, ``overlay`` shows
    ``~`` on decorated tiles.

    Returns:
        list[str]
    """
    if field not in GRID_FIELDS:
        raise ValueError(
            "Unknown field '{}', expected one of {}".format(
                field, ', '.join(GRID_FIELDS)))

    if sector.tiles is None:
        sector.populate_tiles()

    lines = []
    for y in range(SECTOR_HEIGHT):
        row = ''
        for x in range(SECTOR_WIDTH):
            tile = sector.tiles[x][y]
            if field == 'walls':
                row += _wall_char(tile)
            elif field == 'overlay':
                row += '~' if tile.overlay else '.'
            else:
                row += _ramp_char(getattr(tile, field))
        lines.append(row)
    return lines
