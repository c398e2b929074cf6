#!/usr/bin/env python
"""
Sector entries <-> JSON converter for the legacy client's terrain archives.

Archive containers are handled by external tools; this converter reads and
writes *entry directories*, one file per archive entry (m05050.hei,
m05050.dat, ...), as extracted from or packed into the land/maps archives.

Usage:
  python sector_converter.py dump-json <land_dir> <maps_dir> [-o out_dir]
         [--members-land DIR --members-maps DIR] [--pretty]
  python sector_converter.py pack-json <json_dir> [-o out_dir]
  python sector_converter.py print-sector <land_dir> <maps_dir>
         [-x 50 -y 50 -z 0] [--field walls]
"""

import os
import sys
import logging
import argparse

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from landscape_builder import (Landscape, LandscapeError, pack_sectors,
                               sector_to_json, sector_from_json,
                               build_grid_visual)
from landscape_builder.sector_json import GRID_FIELDS

log = logging.getLogger(__name__)


# ===================================================================
# Entry directories
# ===================================================================

class EntryDirectory(object):
    """Directory of entry files exposed through the ``get(name)`` lookup."""

    def __init__(self, path):
        if not os.path.isdir(path):
            raise FileNotFoundError("Entry directory not found: {}".format(path))
        self.path = path

    def get(self, name):
        filepath = os.path.join(self.path, name)
        if not os.path.isfile(filepath):
            return None
        with open(filepath, 'rb') as f:
            return f.read()


def write_entries(entries, output_dir):
    """Write {name: bytes} entries as files; skip empty mappings."""
    if not entries:
        return 0
    os.makedirs(output_dir, exist_ok=True)
    for name, data in sorted(entries.items()):
        with open(os.path.join(output_dir, name), 'wb') as f:
            f.write(data)
    return len(entries)


def load_landscape(args):
    """Build and assemble a Landscape from the CLI's directory arguments."""
    landscape = Landscape()
    landscape.load_free(EntryDirectory(args.land_dir),
                        EntryDirectory(args.maps_dir))

    if args.members_land and args.members_maps:
        landscape.load_members(EntryDirectory(args.members_land),
                               EntryDirectory(args.members_maps))
    elif args.members_land or args.members_maps:
        raise ValueError(
            "--members-land and --members-maps must be given together")

    landscape.assemble()
    for entry, error in sorted(landscape.errors.items()):
        print("  FAIL  {:10s} -- {}".format(entry, error))
    return landscape


# ===================================================================
# Commands
# ===================================================================

def dump_json(landscape, output_dir, pretty=False):
    """Write one <entry>.json file per populated sector."""
    os.makedirs(output_dir, exist_ok=True)

    count = 0
    for sector in landscape.populated_sectors():
        json_path = os.path.join(output_dir, sector.entry_name() + '.json')
        with open(json_path, 'w', encoding='utf-8') as f:
            f.write(sector_to_json(sector, pretty=pretty))
        count += 1

    return count


def pack_json(json_dir, output_dir):
    """
    Encode every sector JSON in json_dir into entry directories.

    Returns:
        dict: {container name: entries written}
    """
    sectors = []

    for filename in sorted(os.listdir(json_dir)):
        if not filename.lower().endswith('.json'):
            continue
        with open(os.path.join(json_dir, filename), 'r',
                  encoding='utf-8') as f:
            try:
                sectors.append(sector_from_json(f.read()))
            except (ValueError, KeyError) as e:
                print("  FAIL  {:40s} -- {}".format(filename, e))

    packed = pack_sectors(sectors)

    return dict(
        (name, write_entries(entries, os.path.join(output_dir, name)))
        for name, entries in packed.items())


def print_sector(landscape, x, y, plane, field):
    sector = landscape.get_sector(x, y, plane)
    if sector is None:
        print("No sector at ({}, {}, {})".format(x, y, plane))
        return 1

    print("{!r}{}".format(sector, ' (members)' if sector.members else ''))
    for line in build_grid_visual(sector, field):
        print(line)
    return 0


# ===================================================================
# CLI
# ===================================================================

def _add_source_args(parser):
    parser.add_argument('land_dir', help='Directory of free .hei entries')
    parser.add_argument('maps_dir', help='Directory of free .dat/.loc entries')
    parser.add_argument('--members-land',
                        help='Directory of members .hei entries')
    parser.add_argument('--members-maps',
                        help='Directory of members .dat/.loc entries')


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Sector entries <-> JSON converter')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command')

    # -- dump-json ------------------------------------------------------
    p_dump = subparsers.add_parser('dump-json',
                                   help='Dump JSON files of each sector')
    _add_source_args(p_dump)
    p_dump.add_argument('-o', '--output', default='sectors-json',
                        help='Output directory (default: sectors-json)')
    p_dump.add_argument('--pretty', action='store_true',
                        help='Pretty-print JSON files')

    # -- pack-json ------------------------------------------------------
    p_pack = subparsers.add_parser(
        'pack-json', help='Encode a directory of sector JSON into entries')
    p_pack.add_argument('json_dir', help='Directory of sector JSON files')
    p_pack.add_argument('-o', '--output', default='sectors-entries',
                        help='Output directory (default: sectors-entries)')

    # -- print-sector ---------------------------------------------------
    p_print = subparsers.add_parser('print-sector',
                                    help='Print a text preview of a sector')
    _add_source_args(p_print)
    p_print.add_argument('-x', type=int, default=50)
    p_print.add_argument('-y', type=int, default=50)
    p_print.add_argument('-z', '--plane', type=int, default=0)
    p_print.add_argument('--field', choices=GRID_FIELDS, default='walls')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s')

    try:
        if args.command == 'dump-json':
            landscape = load_landscape(args)
            count = dump_json(landscape, args.output, pretty=args.pretty)
            print("{} sectors -> {}".format(count, args.output))

        elif args.command == 'pack-json':
            written = pack_json(args.json_dir, args.output)
            for name, count in sorted(written.items()):
                print("  {:14s} {:>5} entries".format(name, count))

        elif args.command == 'print-sector':
            landscape = load_landscape(args)
            return print_sector(landscape, args.x, args.y, args.plane,
                                args.field)

        else:
            parser.print_help()
            return 1

    except (LandscapeError, ValueError, OSError) as e:
        log.error("%s", e)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
