"""
Decoded per-cell view of a sector.

A sector stores diagonal walls and entity placements multiplexed through one
integer buffer (``walls_diagonal``).  The value is split into bands:

    0                  nothing
    1     .. 12000     '/' diagonal wall, overlay = value
    12001 .. 24000     '\\' diagonal wall, overlay = value - 12000
    24001 .. 36000     NPC reference, id = value - 24001
    36001 .. 48000     item reference, id = value - 36001
    48001 ..           object reference, id = value - 48001

Entity ids are stored as id + 1 so that 0 stays free for "nothing".  Tiles
decode the band once into a decoration object and re-encode it when
buffers are rebuilt; the raw integer never leaves this module.
"""

import logging
from enum import Enum, IntEnum

from .errors import AmbiguousPackedValue

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Band constants
# ---------------------------------------------------------------------------

class Band(IntEnum):
    """Start value of each band of the packed diagonal field."""
    NONE = 0
    NW_SE = 12000
    NPC = 24000
    ITEM = 36000
    OBJECT = 48000


NW_SE_OFFSET = Band.NW_SE.value
NPC_OFFSET = Band.NPC.value
ITEM_OFFSET = Band.ITEM.value
OBJECT_OFFSET = Band.OBJECT.value

# Sector geometry used for world coordinates
_SECTOR_SIZE = 48
_REGION_X = 48
_REGION_Y = 36
_CALIBRATION_Y = 96 - 144
PLANE_HEIGHT = 944


class DiagonalDirection(Enum):
    SLASH = '/'
    BACKSLASH = '\\'


# ---------------------------------------------------------------------------
# Decorations
# ---------------------------------------------------------------------------

class DiagonalWall(object):
    """A '/' or '\\' wall across the tile, drawn with an overlay style."""

    __slots__ = ('direction', 'overlay')

    def __init__(self, direction, overlay):
        self.direction = DiagonalDirection(direction)
        self.overlay = int(overlay)

    def to_dict(self):
        return {'direction': self.direction.value, 'overlay': self.overlay}

    def __eq__(self, other):
        return (isinstance(other, DiagonalWall)
                and self.direction == other.direction
                and self.overlay == other.overlay)

    def __hash__(self):
        return hash((self.direction, self.overlay))

    def __repr__(self):
        return "DiagonalWall({!r}, {})".format(self.direction.value,
                                               self.overlay)


class _EntityRef(object):
    """Reference to a placed entity; subclasses fix the band."""

    __slots__ = ('id',)
    band = None

    def __init__(self, entity_id):
        entity_id = int(entity_id)
        if entity_id < 0:
            raise ValueError(
                "{} id must be non-negative, got {}".format(
                    type(self).__name__, entity_id))
        self.id = entity_id

    def __eq__(self, other):
        return type(self) is type(other) and self.id == other.id

    def __hash__(self):
        return hash((type(self).__name__, self.id))

    def __repr__(self):
        return "{}({})".format(type(self).__name__, self.id)


class ObjectRef(_EntityRef):
    band = Band.OBJECT


class ItemRef(_EntityRef):
    band = Band.ITEM


class NpcRef(_EntityRef):
    band = Band.NPC


def decode_packed(value, strict=False):
    """
    Split a packed ``walls_diagonal`` value into its decoration.

    Bands are checked from highest to lowest.  Negative values belong to no
    band; they are logged and decoded as no decoration unless ``strict``.

    Args:
        value: Raw integer from the diagonal buffer.
        strict: Raise AmbiguousPackedValue instead of logging.

    Returns:
        DiagonalWall, ObjectRef, ItemRef, NpcRef or None.
    """
    value = int(value)

    if value > OBJECT_OFFSET:
        return ObjectRef(value - OBJECT_OFFSET - 1)
    if value > ITEM_OFFSET:
        return ItemRef(value - ITEM_OFFSET - 1)
    if value > NPC_OFFSET:
        return NpcRef(value - NPC_OFFSET - 1)
    if value > NW_SE_OFFSET:
        return DiagonalWall(DiagonalDirection.BACKSLASH, value - NW_SE_OFFSET)
    if value > 0:
        return DiagonalWall(DiagonalDirection.SLASH, value)
    if value == 0:
        return None

    if strict:
        raise AmbiguousPackedValue(
            "Packed diagonal value {} is outside every band".format(value))
    log.warning("Packed diagonal value %d is outside every band, ignoring",
                value)
    return None


def encode_packed(decoration):
    """Inverse of decode_packed()."""
    if decoration is None:
        return 0
    if isinstance(decoration, _EntityRef):
        return decoration.band + decoration.id + 1
    if isinstance(decoration, DiagonalWall):
        if decoration.direction is DiagonalDirection.BACKSLASH:
            return decoration.overlay + NW_SE_OFFSET
        return decoration.overlay
    raise TypeError(
        "Unsupported decoration: {}".format(type(decoration).__name__))


def _resolve_decoration(diagonal=None, object_id=None, item_id=None,
                        npc_id=None):
    """Pick one decoration from loose fields: object > item > npc > wall."""
    if object_id is not None:
        return ObjectRef(object_id)
    if item_id is not None:
        return ItemRef(item_id)
    if npc_id is not None:
        return NpcRef(npc_id)
    if diagonal is None:
        return None
    if isinstance(diagonal, DiagonalWall):
        return diagonal
    if not diagonal.get('overlay'):
        return None
    return DiagonalWall(diagonal['direction'], diagonal['overlay'])


def _optional(value):
    """Walls use None for absent; 0 in a buffer means the same thing."""
    return int(value) if value else None


# ---------------------------------------------------------------------------
# Tile
# ---------------------------------------------------------------------------

class Tile(object):
    """
    One cell of a sector.

    ``x`` and ``y`` are the cell's position in storage order, so
    ``index = x * 48 + y`` addresses the sector buffers.  The sector keeps
    its tile matrix with the x axis reversed, which puts this tile at
    ``sector.tiles[47 - x][y]``.

    The ``sector`` attribute is a back-reference to the owner; a tile never
    outlives or owns its sector.
    """

    def __init__(self, sector, x, y, colour=0, elevation=0, direction=0,
                 overlay=0, wall=None, object_id=None, item_id=None,
                 npc_id=None):
        self.sector = sector
        self.x = x
        self.y = y
        self.index = x * _SECTOR_SIZE + y

        self.colour = colour or 0
        self.elevation = elevation or 0
        self.direction = direction or 0
        self.overlay = overlay or 0

        wall = wall or {}
        self.vertical = _optional(wall.get('vertical'))
        self.horizontal = _optional(wall.get('horizontal'))
        self.roof = _optional(wall.get('roof'))
        self.decoration = _resolve_decoration(
            wall.get('diagonal'), object_id, item_id, npc_id)

    # -- decoration accessors ------------------------------------------------

    @property
    def diagonal(self):
        if isinstance(self.decoration, DiagonalWall):
            return self.decoration
        return None

    def _entity_id(self, ref_type):
        if isinstance(self.decoration, ref_type):
            return self.decoration.id
        return None

    @property
    def object_id(self):
        return self._entity_id(ObjectRef)

    @property
    def item_id(self):
        return self._entity_id(ItemRef)

    @property
    def npc_id(self):
        return self._entity_id(NpcRef)

    # -- buffer exchange -----------------------------------------------------

    def populate(self):
        """Read this tile's fields from the owning sector's buffers."""
        sector = self.sector
        i = self.index

        self.colour = int(sector.terrain_colour[i]) & 0xFF
        self.elevation = int(sector.terrain_height[i]) & 0xFF
        self.direction = int(sector.tile_direction[i]) & 0xFF
        self.overlay = int(sector.tile_decoration[i]) & 0xFF
        self.vertical = _optional(int(sector.walls_vertical[i]) & 0xFF)
        self.horizontal = _optional(int(sector.walls_horizontal[i]) & 0xFF)
        self.roof = _optional(int(sector.walls_roof[i]) & 0xFF)
        self.decoration = decode_packed(sector.walls_diagonal[i])

    def to_buffers(self):
        """Write this tile's fields back into the owning sector's buffers."""
        sector = self.sector
        i = self.index

        sector.terrain_height[i] = self.elevation & 0xFF
        sector.terrain_colour[i] = self.colour & 0xFF
        sector.tile_direction[i] = self.direction & 0xFF
        sector.tile_decoration[i] = self.overlay & 0xFF
        sector.walls_vertical[i] = (self.vertical or 0) & 0xFF
        sector.walls_horizontal[i] = (self.horizontal or 0) & 0xFF
        sector.walls_roof[i] = (self.roof or 0) & 0xFF
        sector.walls_diagonal[i] = encode_packed(self.decoration)

    # -- coordinates ---------------------------------------------------------

    def to_coordinates(self):
        """
        Convert to absolute game-world coordinates.

        Returns:
            tuple: (world_x, world_y)
        """
        sector = self.sector
        world_x = self.x + (sector.x - _REGION_X) * _SECTOR_SIZE
        world_y = ((sector.y - _REGION_Y) * _SECTOR_SIZE + self.y
                   + _CALIBRATION_Y + sector.plane * PLANE_HEIGHT)
        return world_x, world_y

    get_game_coords = to_coordinates

    # -- serialisation -------------------------------------------------------

    def to_dict(self):
        diagonal = self.diagonal
        return {
            'colour': self.colour,
            'elevation': self.elevation,
            'direction': self.direction,
            'overlay': self.overlay,
            'wall': {
                'diagonal': diagonal.to_dict() if diagonal else None,
                'vertical': self.vertical,
                'horizontal': self.horizontal,
                'roof': self.roof,
            },
            'objectId': self.object_id,
            'itemId': self.item_id,
            'npcId': self.npc_id,
        }

    @classmethod
    def from_dict(cls, sector, x, y, data):
        """Build a tile from its to_dict() form."""
        return cls(
            sector, x, y,
            colour=data.get('colour'),
            elevation=data.get('elevation'),
            direction=data.get('direction'),
            overlay=data.get('overlay'),
            wall=data.get('wall'),
            object_id=data.get('objectId'),
            item_id=data.get('itemId'),
            npc_id=data.get('npcId'),
        )

    def _content(self):
        return (self.x, self.y, self.colour, self.elevation, self.direction,
                self.overlay, self.vertical, self.horizontal, self.roof,
                self.decoration)

    def __eq__(self, other):
        if not isinstance(other, Tile):
            return NotImplemented
        return self._content() == other._content()

    def __ne__(self, other):
        result = self.__eq__(other)
        return result if result is NotImplemented else not result

    __hash__ = None

    def __repr__(self):
        return "<Tile {},{} elevation={} colour={} {!r}>".format(
            self.x, self.y, self.elevation, self.colour, self.decoration)
