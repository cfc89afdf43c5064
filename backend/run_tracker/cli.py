"""Command line entry point: ``run-tracker <command> ...``."""
import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from run_tracker.core.config import settings
from run_tracker.core.constants import MILE_M
from run_tracker.core.errors import EnrichmentError, FileNotFoundInStoreError, ServiceConfigError, StoreUnavailableError
from run_tracker.core.time_utils import compute_pace, seconds_to_hhmmss, to_local_datetime
from run_tracker.db import SessionLocal, create_database, engine
from run_tracker.schemas.imports import ImportReport, ImportStatus
from run_tracker.services.elevation import new_elevation_provider
from run_tracker.services.enrichment import render_route, update_elevation
from run_tracker.services.importer import coordinator_from_settings
from run_tracker.services.persistence import file_totals, list_files, resolve_file
from run_tracker.services.route import new_route_renderer

logger = logging.getLogger("run_tracker")


def _configure_logging(verbose: int, quiet: int) -> None:
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    level = min(max(level + 10 * (quiet - verbose), logging.DEBUG), logging.CRITICAL)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _parse_date(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date: {value!r} (expected YYYY-MM-DD)")


# --------- commands --------- #

def cmd_import(db, args) -> int:
    paths = [] if args.skip_config_paths else [str(p) for p in settings.import_paths]
    paths.extend(args.paths)
    if not paths:
        logger.error("No import paths provided")
        return 1
    try:
        coordinator = coordinator_from_settings(
            db,
            settings,
            archive=not args.no_copy,
            elevation=not args.no_elevation,
            route_images=args.route_images,
        )
        outcomes = coordinator.import_paths(paths, recursive=args.recursive)
    except (ServiceConfigError, StoreUnavailableError) as e:
        logger.error("%s", e)
        return 1

    for outcome in outcomes:
        line = f"{outcome.status.value:<9} {outcome.path}"
        if outcome.file_uuid:
            line += f"  {outcome.file_uuid}"
        if outcome.status == ImportStatus.failed and outcome.error:
            line += f"  ({outcome.error})"
        print(line)

    report = ImportReport.from_outcomes(outcomes)
    # a single file given explicitly must not already exist
    single_file = len(paths) == 1 and Path(paths[0]).is_file()
    if single_file and report.duplicates:
        logger.error("%s was already imported", paths[0])
        return 1
    return 1 if report.has_failures else 0


def cmd_list_files(db, args) -> int:
    files = list_files(db, since=args.since, until=args.until, reverse=args.reverse, limit=args.limit)
    totals = file_totals(db, [f.id for f in files])
    print(f"{'UUID':<36}  {'Created':<16}  {'Distance':>9}  {'Duration':>8}  {'Pace':>9}")
    for f in files:
        created = (
            to_local_datetime(f.time_created, settings.timezone).strftime("%Y-%m-%d %H:%M")
            if f.time_created
            else "-"
        )
        stats = totals.get(f.id, {})
        distance = stats.get("total_distance_m")
        timer = stats.get("total_timer_time_s")
        print(
            f"{f.uuid:<36}  {created:<16}  "
            f"{(f'{distance / MILE_M:.2f} mi' if distance else '-'):>9}  "
            f"{(seconds_to_hhmmss(int(timer)) if timer is not None else '-'):>8}  "
            f"{(compute_pace(timer, distance) if timer and distance else '-'):>9}"
        )
    return 0


def cmd_update_elevation(db, args) -> int:
    if not args.uuids and not args.fix_missing:
        logger.error("Specify file UUIDs or use --fix-missing")
        return 1
    config = settings.service("elevation")
    if config is None:
        logger.error("No elevation service configured")
        return 1
    try:
        provider = new_elevation_provider(config)
        if args.fix_missing:
            update_elevation(db, provider, overwrite=args.overwrite)
        for ident in args.uuids:
            activity_file = resolve_file(db, ident)
            logger.info("Updating elevation for %s", activity_file.uuid)
            update_elevation(db, provider, file_id=activity_file.id, overwrite=args.overwrite)
    except (ServiceConfigError, FileNotFoundInStoreError, EnrichmentError) as e:
        logger.error("%s", e)
        return 1
    return 0


def cmd_route_image(db, args) -> int:
    config = settings.service("route_visualization")
    if config is None:
        logger.error("No route visualization service configured")
        return 1
    try:
        renderer = new_route_renderer(config)
        activity_file = resolve_file(db, args.uuid)
        image = render_route(db, renderer, activity_file.id)
    except (ServiceConfigError, FileNotFoundInStoreError, EnrichmentError) as e:
        logger.error("%s", e)
        return 1

    if args.output == "-":
        sys.stdout.buffer.write(image)
        sys.stdout.flush()
        return 0
    output = Path(args.output or f"{activity_file.uuid}.{renderer.image_format}")
    try:
        output.write_bytes(image)
    except OSError as e:
        logger.error("Could not write %s: %s", output, e)
        return 1
    logger.info("Saved route image to %s", output)
    return 0


def cmd_serve(db, args) -> int:
    import uvicorn

    uvicorn.run("run_tracker.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


# --------- parser --------- #

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="run-tracker", description="Import and browse GPS watch FIT files")
    ap.add_argument("-v", "--verbose", action="count", default=0, help="More log output (repeatable)")
    ap.add_argument("-q", "--quiet", action="count", default=0, help="Less log output (repeatable)")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import", help="Import FIT files or directories of FIT files")
    p.add_argument("paths", nargs="*", help="Files or directories, added to the configured import_paths")
    p.add_argument("--skip-config-paths", action="store_true", help="Ignore the configured import_paths")
    p.add_argument("-r", "--recursive", action="store_true", help="Descend into sub-directories")
    p.add_argument("--no-copy", action="store_true", help="Do not keep a copy of the raw files")
    p.add_argument("--no-elevation", action="store_true", help="Skip the elevation lookup")
    p.add_argument("--route-images", action="store_true", help="Render a route image per file")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("list-files", help="List imported files")
    p.add_argument("--since", type=_parse_date, help="Only files created on or after this date")
    p.add_argument("--until", type=_parse_date, help="Only files created before this date")
    p.add_argument("-r", "--reverse", action="store_true", help="Oldest first")
    p.add_argument("-n", "--limit", type=int, help="Show at most this many files")
    p.set_defaults(func=cmd_list_files)

    p = sub.add_parser("update-elevation", help="Fetch elevation data for imported files")
    p.add_argument("uuids", nargs="*", help="File UUIDs, unique prefixes or :last")
    p.add_argument("-a", "--fix-missing", action="store_true", help="Fill missing elevation for all files")
    p.add_argument("-f", "--overwrite", action="store_true", help="Replace existing elevation data")
    p.set_defaults(func=cmd_update_elevation)

    p = sub.add_parser("route-image", help="Render the route of a file")
    p.add_argument("uuid", help="File UUID, unique prefix or :last")
    p.add_argument("-o", "--output", help="Output file, '-' for stdout (default: <uuid>.<format>)")
    p.set_defaults(func=cmd_route_image)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--reload", action="store_true")
    p.set_defaults(func=cmd_serve)
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose, args.quiet)
    if args.command == "serve":
        return args.func(None, args)

    create_database(engine)
    db = SessionLocal()
    try:
        return args.func(db, args)
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
