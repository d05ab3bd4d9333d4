# main.py

import sys
import json
import logging
import asyncio
import argparse
import aiofiles
import config
from tzglobe.boundary_locator import OCEAN_TZID
from tzglobe.durable_store import RedisKeyValueStore
from tzglobe.feature_store import feature_store
from tzglobe.models import InvalidGeoJsonError
from tzglobe.offset_matcher import distinct_offsets, format_utc_offset
from tzglobe.scene import GlobeSurface
from tzglobe.service import TimezoneService
from tzglobe.sphere_renderer import OVERLAY_GROUP_NAME

# --- Logging setup ---
logging.basicConfig(format='[%(levelname)s] %(asctime)s - %(message)s', level=config.LOG_LEVEL)
logging.getLogger('aiosqlite').setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='tzglobe',
        description='Timezone lookup, offset matching and globe overlay export'
    )
    commands = parser.add_subparsers(dest='command', required=True)

    lookup = commands.add_parser('lookup', help='Timezone at a coordinate')
    lookup.add_argument('lat', type=float)
    lookup.add_argument('lon', type=float)

    offset = commands.add_parser('offset', help='Timezones currently at a UTC offset')
    offset.add_argument('hours', type=float, help='e.g. 5.75 for UTC+5:45')

    render = commands.add_parser('render', help='Export the overlay for a timezone or an offset')
    target = render.add_mutually_exclusive_group(required=True)
    target.add_argument('--tzid')
    target.add_argument('--offset', type=float)
    render.add_argument('--out', required=True, help='Output JSON file')
    render.add_argument('--radius', type=float, default=1.0, help='Globe radius (default: 1.0)')

    publish = commands.add_parser('publish', help='Upload a new timezone GeoJSON dataset')
    publish.add_argument('file')

    commands.add_parser('stats', help='Dataset and cache statistics')
    return parser


async def cmd_lookup(service: TimezoneService, args) -> int:
    info = await service.describe_timezone_at(args.lat, args.lon)
    print(f"📍 {args.lat}, {args.lon}")
    print(f"🕐 {info.display_name}")
    print(f"   tzid: {info.tzid}")
    print(f"   local time: {info.local_time}")
    return 0


async def cmd_offset(service: TimezoneService, args) -> int:
    tzids = sorted(await service.find_timezones_for_offset(args.hours))
    print(f"🌐 {format_utc_offset(args.hours)}: {len(tzids)} timezones")
    for tzid in tzids:
        print(f"   {tzid}")
    return 0


async def cmd_render(service: TimezoneService, args) -> int:
    if args.tzid:
        drawn = await service.render_feature(args.tzid)
        label = args.tzid
    else:
        drawn = len(await service.render_offset(args.offset))
        label = format_utc_offset(args.offset)

    group = service.globe.get_object_by_name(OVERLAY_GROUP_NAME)
    overlay = group.to_dict() if group is not None else None

    async with aiofiles.open(args.out, mode='w', encoding='utf-8') as f:
        await f.write(json.dumps(overlay))

    print(f"🖌 {label}: {drawn} rendered, overlay written to {args.out}")
    return 0 if drawn > 0 else 1


async def cmd_publish(service: TimezoneService, args) -> int:
    try:
        async with aiofiles.open(args.file, mode='r', encoding='utf-8') as f:
            text = await f.read()
    except OSError as e:
        logging.error(f"❌ Could not read {args.file}: {e}")
        return 1

    try:
        collection = await service.store.publish(text)
    except InvalidGeoJsonError as e:
        logging.error(f"❌ {e}")
        return 1
    except Exception as e:
        logging.error(f"❌ Failed to upload timezone data: {e}")
        return 1

    print(f"✅ Published {len(collection)} timezone features")
    return 0


async def cmd_stats(service: TimezoneService, args) -> int:
    collection = await service.ensure_loaded()
    tzids = [tzid for tzid in collection.tzids if tzid and tzid != OCEAN_TZID]
    offsets = sorted(distinct_offsets(tzids))

    print(f"📊 Features: {len(collection)} ({len(set(tzids))} distinct tzids)")
    print(f"🌐 Offsets in use: {', '.join(format_utc_offset(o) for o in offsets) or 'none'}")
    print(f"🗄 Cache backend: {config.TZ_CACHE_BACKEND}")
    durable = service.store.durable
    if isinstance(durable, RedisKeyValueStore):
        health = await durable.health(service.store.cache_key)
        print(f"   redis: {'connected' if health['connected'] else 'down'}, {health['key']} {'present' if health['present'] else 'missing'}")
    for key, value in service.store.get_stats().items():
        print(f"   {key}: {value}")
    return 0


COMMANDS = {
    'lookup': cmd_lookup,
    'offset': cmd_offset,
    'render': cmd_render,
    'publish': cmd_publish,
    'stats': cmd_stats,
}


async def run(args) -> int:
    globe = GlobeSurface(radius=args.radius) if args.command == 'render' else None
    service = TimezoneService(store=feature_store, globe=globe)
    try:
        return await COMMANDS[args.command](service, args)
    finally:
        if isinstance(feature_store.durable, RedisKeyValueStore):
            await feature_store.durable.close()


def main():
    args = build_parser().parse_args()

    if not config.TZ_GEOJSON_SOURCE:
        logging.warning("⚠️ TZ_GEOJSON_SOURCE is not set, only the durable cache will be used")

    try:
        exit_code = asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\n🛑 Stopped by user.")
        exit_code = 130

    sys.exit(exit_code)


if __name__ == '__main__':
    main()
