"""
Sector: one 48x48 block of the world map and its entry codecs.

A sector owns eight parallel 2304-cell buffers in storage order
(index = x * 48 + y).  The archive entries that fill them are:

  .hei  land archive   height, colour           repeat RLE + scramble
  .dat  map archive    walls, roof, overlay,    zero / skip / repeat RLE
                       direction
  .loc  map archive    object placements        skip RLE (+48000)
  .jm   single archive every field              delta / uncompressed

Each parse_* call decodes one entry and overwrites the fields it carries
(parse_loc paints over the diagonal buffer instead), so sources layer in
the order they are applied.  Call each parse_* once per source.  The to_*
methods produce the entry bytes for the current buffer state.

After all sources are applied, populate_tiles() builds the Tile matrix.
The matrix is stored with the x axis reversed (``tiles[47 - x][y]``) since
archive column order is mirrored relative to the map.
"""

import logging
import struct

import numpy as np

from .buffer_codec import (
    SECTOR_WIDTH, SECTOR_HEIGHT, MAX_TILES, HEIGHT_SEED, COLOUR_SEED,
    decode_repeat_rle, encode_repeat_rle, decode_zero_rle, encode_zero_rle,
    decode_skip_rle, unscramble, scramble, decode_delta, encode_delta,
    read_flat,
)
from .errors import OutOfBounds, TruncatedInput
from .tile import Tile, NW_SE_OFFSET, NPC_OFFSET, OBJECT_OFFSET

log = logging.getLogger(__name__)


# .jm layout: seven byte fields plus one big-endian uint16 field
_JM_SIZE = 7 * MAX_TILES + 2 * MAX_TILES
_MAX_UINT16 = 0xFFFF

# Planes that carry a .hei entry when sectors are re-packed
HEI_PLANES = (0, 3)

_BUFFER_FIELDS = (
    'terrain_height', 'terrain_colour', 'tile_direction', 'tile_decoration',
    'walls_vertical', 'walls_horizontal', 'walls_roof', 'walls_diagonal',
)


class Sector(object):
    """
    One 48x48 terrain block at grid position (x, y, plane).

    Attributes:
        x, y: Grid position (0..64, 0..55).
        plane: 0 ground, 1 first floor, 2 second floor, 3 dungeon.
        members: True if the last source that supplied data was members
            content.
        empty: True until a parse step observes a non-zero value.
        tiles: 48x48 Tile matrix (x reversed) after populate_tiles().
    """

    def __init__(self, x, y, plane, members=False, tiles=None):
        self.x = x
        self.y = y
        self.plane = plane
        self.members = bool(members)

        self.width = SECTOR_WIDTH
        self.height = SECTOR_HEIGHT
        self.empty = True

        # elevation 0-255
        self.terrain_height = np.zeros(MAX_TILES, dtype=np.uint8)
        # index into the terrain colour palette
        self.terrain_colour = np.zeros(MAX_TILES, dtype=np.uint8)
        # facing for scenery placed on the tile
        self.tile_direction = np.zeros(MAX_TILES, dtype=np.uint8)
        # overlay id (road, water, floor, ...)
        self.tile_decoration = np.zeros(MAX_TILES, dtype=np.uint8)

        # wall style ids, 0 = none
        self.walls_vertical = np.zeros(MAX_TILES, dtype=np.uint8)
        self.walls_horizontal = np.zeros(MAX_TILES, dtype=np.uint8)
        self.walls_roof = np.zeros(MAX_TILES, dtype=np.uint8)

        # banded diagonal walls / npc / item / object references
        self.walls_diagonal = np.zeros(MAX_TILES, dtype=np.int32)

        self.tiles = None

        if tiles is not None:
            self._adopt_tiles(tiles)
            self.populate_buffers()
            self.empty = not any(buf.any() for buf in self.buffers().values())

    # -----------------------------------------------------------------------
    # Entry parsing
    # -----------------------------------------------------------------------

    def parse_hei(self, data):
        """
        Decode a .hei land entry into height and colour.

        Call once per source.

        Raises:
            TruncatedInput: If the entry ends before both fields decode.
            MalformedArchiveEntry: If a run token overshoots a field.
        """
        raw_height, offset = decode_repeat_rle(data, 0)
        raw_colour, offset = decode_repeat_rle(data, offset)
        self._warn_trailing(data, offset, 'hei')

        self.terrain_height = unscramble(raw_height, HEIGHT_SEED)
        self.terrain_colour = unscramble(raw_colour, COLOUR_SEED)

        if self.terrain_height.any() or self.terrain_colour.any():
            self.empty = False

    def parse_dat(self, data):
        """
        Decode a .dat map entry into walls, roof, overlay and direction.

        Field order: vertical, horizontal, '/' diagonals, '\\' diagonals,
        roof, overlay, direction.  The '\\' pass only paints cells holding a
        non-zero literal so that it layers over the '/' pass.  Older
        readers stored a literal 0 there as 12000; here it leaves the '/'
        value in place.  Only the threshold-128 layout is supported.

        Call once per source.

        Raises:
            TruncatedInput: If the entry ends before all fields decode.
            MalformedArchiveEntry: If a run token overshoots a field.
        """
        self.walls_vertical, offset = decode_zero_rle(data, 0)
        self.walls_horizontal, offset = decode_zero_rle(data, offset)

        forward, offset = decode_zero_rle(data, offset)
        self.walls_diagonal = forward.astype(np.int32)

        back, offset = decode_skip_rle(data, offset)
        for tile, val in back:
            if val > 0:
                self.walls_diagonal[tile] = val + NW_SE_OFFSET

        self.walls_roof, offset = decode_zero_rle(data, offset)
        self.tile_decoration, offset = decode_repeat_rle(data, offset)
        self.tile_direction, offset = decode_zero_rle(data, offset)
        self._warn_trailing(data, offset, 'dat')

        if (self.walls_vertical.any() or self.walls_horizontal.any()
                or self.walls_diagonal.any()):
            self.empty = False

    def parse_loc(self, data):
        """
        Paint object placements from a .loc map entry.

        Literals become ``value + 48000`` in the diagonal buffer; skipped
        cells keep whatever an earlier parse wrote there.  The entry may
        stop before the last cell, in which case the rest is skipped.

        Call once per source, after parse_dat for the same source.
        """
        if not data:
            return

        placements, offset = decode_skip_rle(data, 0, allow_short=True)
        self._warn_trailing(data, offset, 'loc')

        for tile, val in placements:
            self.walls_diagonal[tile] = val + OBJECT_OFFSET

        log.debug("%s: %d object placements", self.entry_name(),
                  len(placements))

    def parse_jm(self, data):
        """
        Decode a .jm entry holding every field of the sector.

        Height and colour are delta coded, the diagonal field is 2304
        big-endian uint16 values, everything else is stored flat.  A
        successful parse always marks the sector as present.

        Call once per source.

        Raises:
            TruncatedInput: If the entry is shorter than 9 * 2304 bytes.
        """
        if len(data) < _JM_SIZE:
            raise TruncatedInput(
                ".jm entry {} is {} bytes, expected {}".format(
                    self.entry_name(), len(data), _JM_SIZE))

        self.terrain_height, offset = decode_delta(data, 0)
        self.terrain_colour, offset = decode_delta(data, offset)
        self.walls_vertical, offset = read_flat(data, offset)
        self.walls_horizontal, offset = read_flat(data, offset)

        end = offset + 2 * MAX_TILES
        self.walls_diagonal = np.frombuffer(
            bytes(data[offset:end]), dtype='>u2').astype(np.int32)
        offset = end

        self.walls_roof, offset = read_flat(data, offset)
        self.tile_decoration, offset = read_flat(data, offset)
        self.tile_direction, offset = read_flat(data, offset)
        self._warn_trailing(data, offset, 'jm')

        self.empty = False

    def _warn_trailing(self, data, offset, kind):
        if offset < len(data):
            log.warning("%s.%s: %d trailing bytes ignored",
                        self.entry_name(), kind, len(data) - offset)

    # -----------------------------------------------------------------------
    # Tiles
    # -----------------------------------------------------------------------

    def populate_tiles(self):
        """Build the Tile matrix from the buffers, x axis reversed."""
        tiles = []
        for x in range(SECTOR_WIDTH):
            column = []
            for y in range(SECTOR_HEIGHT):
                tile = Tile(self, x, y)
                tile.populate()
                column.append(tile)
            tiles.append(column)

        tiles.reverse()
        self.tiles = tiles
        return tiles

    def populate_buffers(self):
        """Rewrite all eight buffers from the (edited) Tile matrix."""
        if self.tiles is None:
            raise ValueError(
                "Sector {} has no tiles to encode".format(self.entry_name()))

        for column in self.tiles:
            for tile in column:
                tile.to_buffers()

    def _adopt_tiles(self, tiles):
        """Take a 48x48 matrix of Tiles or tile dicts in display order."""
        if len(tiles) != SECTOR_WIDTH or any(
                len(column) != SECTOR_HEIGHT for column in tiles):
            raise ValueError(
                "Tile matrix must be {}x{}".format(SECTOR_WIDTH,
                                                   SECTOR_HEIGHT))

        self.tiles = []
        for i, column in enumerate(tiles):
            x = SECTOR_WIDTH - 1 - i
            adopted = []
            for y, tile in enumerate(column):
                if isinstance(tile, Tile):
                    tile = tile.to_dict()
                adopted.append(Tile.from_dict(self, x, y, tile))
            self.tiles.append(adopted)

    def get_tile(self, x, y):
        """Tile at display position (x, y), i.e. ``tiles[x][y]``."""
        if self.tiles is None:
            raise ValueError(
                "Sector {} tiles not populated".format(self.entry_name()))
        if not (0 <= x < SECTOR_WIDTH and 0 <= y < SECTOR_HEIGHT):
            raise OutOfBounds(
                "Tile ({}, {}) outside {}x{} sector".format(
                    x, y, SECTOR_WIDTH, SECTOR_HEIGHT))
        return self.tiles[x][y]

    # -----------------------------------------------------------------------
    # Entry encoding
    # -----------------------------------------------------------------------

    def entry_name(self):
        """Archive entry name without extension, e.g. ``m05050``."""
        return "m{}{}{}{}{}".format(self.plane, self.x // 10, self.x % 10,
                                    self.y // 10, self.y % 10)

    def to_hei(self):
        """Encode height and colour as a .hei entry."""
        height = encode_repeat_rle(scramble(self.terrain_height, HEIGHT_SEED))
        colour = encode_repeat_rle(scramble(self.terrain_colour, COLOUR_SEED))
        return height + colour

    def to_dat(self):
        """
        Encode walls, roof, overlay and direction as a .dat entry.

        Entity references in the diagonal buffer are not part of .dat and
        are left out.  Objects belong to .loc; npc and item references have
        no classic entry and are dropped with a warning.

        Raises:
            ValueError: If a field holds a value of 128 or more.
        """
        diagonal = self.walls_diagonal.astype(np.int64)
        dropped = int(np.count_nonzero((diagonal > NPC_OFFSET)
                                       & (diagonal <= OBJECT_OFFSET)))
        if dropped:
            log.warning("%s.dat: %d npc/item references dropped",
                        self.entry_name(), dropped)

        forward = np.where((diagonal > 0) & (diagonal <= NW_SE_OFFSET),
                           diagonal, 0)
        back = np.where((diagonal > NW_SE_OFFSET) & (diagonal <= NPC_OFFSET),
                        diagonal - NW_SE_OFFSET, 0)

        return b''.join((
            encode_zero_rle(self.walls_vertical),
            encode_zero_rle(self.walls_horizontal),
            encode_zero_rle(forward),
            encode_zero_rle(back),
            encode_zero_rle(self.walls_roof),
            encode_repeat_rle(self.tile_decoration),
            encode_zero_rle(self.tile_direction),
        ))

    def to_loc(self):
        """
        Encode object placements as a .loc entry.

        Returns:
            bytes, or None if the sector holds no objects.

        Raises:
            ValueError: If an object id does not fit a 7-bit literal.
        """
        diagonal = self.walls_diagonal.astype(np.int64)
        objects = np.where(diagonal > OBJECT_OFFSET, diagonal - OBJECT_OFFSET,
                           0)

        if not objects.any():
            return None

        return encode_zero_rle(objects)

    def to_jm(self):
        """
        Encode every field as a .jm entry.

        Raises:
            ValueError: If a diagonal value does not fit an unsigned 16-bit.
        """
        diagonal = self.walls_diagonal.astype(np.int64)
        if diagonal.min() < 0 or diagonal.max() > _MAX_UINT16:
            raise ValueError(
                "Diagonal values of {} do not fit 16 bits".format(
                    self.entry_name()))

        return b''.join((
            encode_delta(self.terrain_height),
            encode_delta(self.terrain_colour),
            self.walls_vertical.astype(np.uint8).tobytes(),
            self.walls_horizontal.astype(np.uint8).tobytes(),
            struct.pack('>{}H'.format(MAX_TILES), *diagonal.tolist()),
            self.walls_roof.astype(np.uint8).tobytes(),
            self.tile_decoration.astype(np.uint8).tobytes(),
            self.tile_direction.astype(np.uint8).tobytes(),
        ))

    # -----------------------------------------------------------------------
    # Dict form
    # -----------------------------------------------------------------------

    def buffers(self):
        """Return the eight buffers keyed by field name."""
        return dict((name, getattr(self, name)) for name in _BUFFER_FIELDS)

    def to_dict(self):
        """JSON-ready dict: position, members flag and the tile matrix."""
        if self.tiles is None:
            self.populate_tiles()
        return {
            'x': self.x,
            'y': self.y,
            'plane': self.plane,
            'members': self.members,
            'tiles': [[tile.to_dict() for tile in column]
                      for column in self.tiles],
        }

    @classmethod
    def from_dict(cls, data):
        """Build a sector (buffers included) from its to_dict() form."""
        return cls(data['x'], data['y'], data['plane'],
                   members=data.get('members', False), tiles=data['tiles'])

    def __repr__(self):
        return "<Sector {} {}x{}>".format(self.entry_name(), self.width,
                                          self.height)
