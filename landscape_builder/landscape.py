"""
Landscape: the world grid of sectors assembled from archive sources.

Sectors are addressed by (x, y, plane) with x in 0..64, y in 0..55 and
plane in 0..3.  Nothing below (48, 37) is ever populated; that corner is the
origin of the playable region and of the world coordinate system.

Sources are keyed entry containers.  Any object with a ``get(name)`` method
returning bytes or None works (a dict of entry name -> bytes, or an archive
reader).  Two families exist and cannot be mixed:

  classic  land container (.hei) + map container (.dat, .loc)
  jm       one map container (.jm)

Sources are applied in registration order, so a members source registered
after the free one overrides any entry both of them carry.
"""

import logging

from .buffer_codec import SECTOR_WIDTH, SECTOR_HEIGHT
from .errors import LandscapeError, OutOfBounds, SectorNotPopulated
from .sector import Sector
from .tile import PLANE_HEIGHT

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Grid constants
# ---------------------------------------------------------------------------

MAX_X_SECTORS = 65
MAX_Y_SECTORS = 56

# ground, first floor, second floor, dungeon/basement
MAX_PLANES = 4

MIN_REGION_X = 48
MIN_REGION_Y = 37

_PLANE_STRIDE = MAX_X_SECTORS * MAX_Y_SECTORS


class ArchiveSource(object):
    """One registered pair of entry containers and its content tier."""

    __slots__ = ('land', 'maps', 'members', 'jm')

    def __init__(self, land, maps, members=False, jm=False):
        self.land = land
        self.maps = maps
        self.members = bool(members)
        self.jm = bool(jm)

    def __repr__(self):
        return "<ArchiveSource {}{}>".format(
            'members' if self.members else 'free', ' jm' if self.jm else '')


def _entry(container, name):
    if container is None:
        return None
    return container.get(name)


class Landscape(object):
    """
    Sparse 65x56x4 grid of sectors.

    The grid is one flat list indexed ``plane * 65 * 56 + x * 56 + y``;
    absent sectors are None.
    """

    def __init__(self):
        self.width = MAX_X_SECTORS
        self.height = MAX_Y_SECTORS
        self.depth = MAX_PLANES

        self.min_region_x = MIN_REGION_X
        self.min_region_y = MIN_REGION_Y
        self.max_region_x = None
        self.max_region_y = None

        self.sources = []
        self.errors = {}
        self._sectors = [None] * (_PLANE_STRIDE * MAX_PLANES)

    # -----------------------------------------------------------------------
    # Sources
    # -----------------------------------------------------------------------

    def _register(self, source):
        if self.sources and self.sources[0].jm != source.jm:
            raise ValueError(
                ".jm sources cannot be mixed with .hei/.dat/.loc sources")
        self.sources.append(source)
        log.debug("Registered %r (%d sources)", source, len(self.sources))

    def load_source(self, land_entries, map_entries, members=False):
        """
        Register a classic source.

        Args:
            land_entries: Container holding ``<entry>.hei`` records.
            map_entries: Container holding ``<entry>.dat`` and
                ``<entry>.loc`` records.
            members: True for members (pay-tier) content.
        """
        self._register(ArchiveSource(land_entries, map_entries, members))

    def load_free(self, land_entries, map_entries):
        self.load_source(land_entries, map_entries, members=False)

    def load_members(self, land_entries, map_entries):
        self.load_source(land_entries, map_entries, members=True)

    def load_jm_source(self, map_entries, members=False):
        """Register a container of ``<entry>.jm`` records."""
        self._register(ArchiveSource(None, map_entries, members, jm=True))

    # -----------------------------------------------------------------------
    # Assembly
    # -----------------------------------------------------------------------

    def _apply_sources(self, sector):
        entry = sector.entry_name()

        for source in self.sources:
            if source.jm:
                data = _entry(source.maps, entry + '.jm')
                if data is not None:
                    sector.parse_jm(data)
                    sector.members = source.members
                continue

            data = _entry(source.land, entry + '.hei')
            if data is not None:
                sector.parse_hei(data)
                sector.members = source.members

            data = _entry(source.maps, entry + '.dat')
            if data is not None:
                sector.parse_dat(data)
                sector.members = source.members

            data = _entry(source.maps, entry + '.loc')
            if data is not None:
                sector.parse_loc(data)

    def assemble(self):
        """
        Parse every sector of the playable region from the sources.

        Non-empty sectors are stored in the grid and extend the populated
        bounds.  A sector whose entries fail to decode is logged, recorded
        in ``errors`` and skipped.

        Returns:
            int: Number of sectors stored.
        """
        stored = 0

        for plane in range(MAX_PLANES):
            for y in range(self.min_region_y, MAX_Y_SECTORS):
                for x in range(self.min_region_x, MAX_X_SECTORS):
                    sector = Sector(x, y, plane)

                    try:
                        self._apply_sources(sector)
                    except LandscapeError as e:
                        log.warning("Skipping sector %s: %s",
                                    sector.entry_name(), e)
                        self.errors[sector.entry_name()] = e
                        continue

                    if sector.empty:
                        continue

                    sector.populate_tiles()
                    self.set_sector(sector)
                    stored += 1

        log.info("Landscape: %d sectors populated, bounds x %s..%s y %s..%s",
                 stored, self.min_region_x, self.max_region_x,
                 self.min_region_y, self.max_region_y)
        return stored

    # -----------------------------------------------------------------------
    # Grid access
    # -----------------------------------------------------------------------

    @staticmethod
    def in_bounds(x, y, plane):
        return (0 <= x < MAX_X_SECTORS and 0 <= y < MAX_Y_SECTORS
                and 0 <= plane < MAX_PLANES)

    def _index(self, x, y, plane):
        if not self.in_bounds(x, y, plane):
            raise OutOfBounds(
                "Sector ({}, {}, {}) outside {}x{}x{} grid".format(
                    x, y, plane, MAX_X_SECTORS, MAX_Y_SECTORS, MAX_PLANES))
        return plane * _PLANE_STRIDE + x * MAX_Y_SECTORS + y

    def get_sector(self, x, y, plane):
        """
        Return the sector at (x, y, plane) or None if none is stored.

        Raises:
            OutOfBounds: If the position is outside the grid.
        """
        return self._sectors[self._index(x, y, plane)]

    def set_sector(self, sector):
        """Store a sector at its own position and extend the bounds."""
        self._sectors[self._index(sector.x, sector.y, sector.plane)] = sector

        if self.max_region_x is None or sector.x > self.max_region_x:
            self.max_region_x = sector.x
        if self.max_region_y is None or sector.y > self.max_region_y:
            self.max_region_y = sector.y

    def populated_sectors(self):
        """
        Yield every stored non-empty sector inside the populated bounds.

        Order is plane, then x, then y.  Each call returns a new generator.
        """
        if self.max_region_x is None:
            return

        for plane in range(MAX_PLANES):
            for x in range(self.min_region_x, self.max_region_x + 1):
                for y in range(self.min_region_y, self.max_region_y + 1):
                    sector = self._sectors[self._index(x, y, plane)]
                    if sector is not None and not sector.empty:
                        yield sector

    def neighbours_of(self, x, y, plane):
        """
        Return the sectors around (x, y, plane) as (north, east, south, west).

        North is y - 1, south y + 1.  East is x - 1 and west x + 1 because
        the archive x axis is mirrored.  Missing neighbours are None.
        """
        def lookup(nx, ny):
            if not self.in_bounds(nx, ny, plane):
                return None
            return self._sectors[self._index(nx, ny, plane)]

        return (lookup(x, y - 1), lookup(x - 1, y), lookup(x, y + 1),
                lookup(x + 1, y))

    def tile_at_world_coords(self, world_x, world_y):
        """
        Find the tile at absolute game-world coordinates.

        Raises:
            OutOfBounds: If the coordinates map outside the grid.
            SectorNotPopulated: If no sector is stored there.
        """
        if world_x < 0 or world_y < 0:
            raise OutOfBounds(
                "World coordinates ({}, {}) are negative".format(
                    world_x, world_y))

        plane = world_y // PLANE_HEIGHT
        local_y = world_y - plane * PLANE_HEIGHT

        sector_x = world_x // SECTOR_WIDTH + self.min_region_x
        sector_y = local_y // SECTOR_HEIGHT + self.min_region_y

        sector = self.get_sector(sector_x, sector_y, plane)
        if sector is None:
            raise SectorNotPopulated(
                "No sector at ({}, {}, {}) for world ({}, {})".format(
                    sector_x, sector_y, plane, world_x, world_y))

        if sector.tiles is None:
            sector.populate_tiles()

        return sector.tiles[SECTOR_WIDTH - 1 - world_x % SECTOR_WIDTH][
            local_y % SECTOR_HEIGHT]

    def __repr__(self):
        return "<Landscape {}x{}x{}>".format(self.width, self.height,
                                             self.depth)
