"""Import FIT files into the database, one transaction per file.

A batch never stops on a bad file: decode, mapping and write failures become
a ``failed`` outcome and the next file is processed. Only a failure of the
duplicate lookup itself (the database is unreachable) ends the batch.
"""
import logging
from os import PathLike
from pathlib import Path
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from run_tracker.core.config import Settings, settings
from run_tracker.core.constants import FIT_SUFFIX
from run_tracker.core.errors import (
    DuplicateFileError,
    EnrichmentError,
    StoreUnavailableError,
    TrackerError,
)
from run_tracker.models.activity_file import ActivityFile
from run_tracker.schemas.imports import ImportOutcome, ImportStatus
from run_tracker.services.elevation import ElevationProvider, new_elevation_provider
from run_tracker.services.enrichment import archive_file, save_route_image, update_elevation
from run_tracker.services.fingerprint import fingerprint, fingerprint_file
from run_tracker.services.fit_decoder import DecodedMessage, decode
from run_tracker.services.persistence import find_file_by_uuid, write_activity
from run_tracker.services.route import RouteRenderer, new_route_renderer
from run_tracker.services.schema_mapper import map_messages

logger = logging.getLogger(__name__)

Decoder = Callable[[bytes], list[DecodedMessage]]
# Called as hook(db, activity_file, filename, data) after a file has committed
PostCommitHook = Callable[[Session, ActivityFile, str, bytes], None]


def collect_fit_files(directory: Path, recursive: bool = False) -> list[Path]:
    """FIT files in `directory` (suffix matched case-insensitively), sorted by path."""
    pattern = "**/*" if recursive else "*"
    return sorted(
        p for p in directory.glob(pattern) if p.is_file() and p.suffix.lower() == FIT_SUFFIX
    )


class ImportCoordinator:
    def __init__(
        self,
        db: Session,
        decoder: Decoder = decode,
        hooks: Iterable[PostCommitHook] = (),
    ):
        self.db = db
        self.decoder = decoder
        self.hooks = list(hooks)

    # --------- batch --------- #

    def import_paths(self, paths: Iterable[str | PathLike], recursive: bool = False) -> list[ImportOutcome]:
        """Import every FIT file named by `paths`, expanding directories.

        Returns one outcome per file in the order the files were visited.
        A path that does not exist yields a ``failed`` outcome of its own.
        """
        outcomes: list[ImportOutcome] = []
        for raw in paths:
            path = Path(raw)
            if path.is_dir():
                files = collect_fit_files(path, recursive)
                if not files:
                    logger.info("No FIT files found in %s", path)
                for fit_path in files:
                    outcomes.append(self.import_file(fit_path))
            elif path.is_file():
                outcomes.append(self.import_file(path))
            else:
                logger.warning("Import path %s does not exist", path)
                outcomes.append(_failed(str(path), "No such file or directory"))

        imported = sum(1 for o in outcomes if o.status == ImportStatus.imported)
        duplicates = sum(1 for o in outcomes if o.status == ImportStatus.duplicate)
        logger.info(
            "Imported %d files, skipped %d duplicates, %d failed",
            imported,
            duplicates,
            len(outcomes) - imported - duplicates,
        )
        return outcomes

    # --------- single file --------- #

    def import_file(self, path: str | PathLike) -> ImportOutcome:
        name = str(path)
        try:
            file_uuid = fingerprint_file(path)
        except OSError as exc:
            logger.error("Could not read %s: %s", name, exc)
            return _failed(name, f"Could not read file: {exc}")

        existing = self._lookup(file_uuid)
        if existing is not None:
            return self._duplicate(name, file_uuid, existing.id)

        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            logger.error("Could not read %s: %s", name, exc)
            return _failed(name, f"Could not read file: {exc}")
        # store the fingerprint of the bytes actually decoded
        return self._import(name, data, fingerprint(data))

    def import_data(self, name: str, data: bytes) -> ImportOutcome:
        """Import content that is already in memory, e.g. an HTTP upload."""
        file_uuid = fingerprint(data)
        existing = self._lookup(file_uuid)
        if existing is not None:
            return self._duplicate(name, file_uuid, existing.id)
        return self._import(name, data, file_uuid)

    def _lookup(self, file_uuid: str) -> Optional[ActivityFile]:
        try:
            return find_file_by_uuid(self.db, file_uuid)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreUnavailableError(f"Could not query the database: {exc}") from exc

    def _import(self, name: str, data: bytes, file_uuid: str) -> ImportOutcome:
        try:
            mapped = map_messages(self.decoder(data))
            mapped.file.uuid = file_uuid
            mapped.file.filename = Path(name).name
            mapped.file.size_bytes = len(data)
            activity_file = write_activity(self.db, mapped)
        except DuplicateFileError as exc:
            # another writer committed the same content after our lookup
            return self._duplicate(name, file_uuid, None, str(exc))
        except TrackerError as exc:
            logger.error("Failed to import %s: %s", name, exc)
            return _failed(name, str(exc), file_uuid)
        except Exception as exc:
            logger.exception("Unexpected error importing %s", name)
            return _failed(name, f"Unexpected error: {exc}", file_uuid)

        file_id = activity_file.id
        logger.info(
            "Imported %s as %s (%d sessions, %d laps, %d track points)",
            name,
            file_uuid,
            len(mapped.sessions),
            mapped.lap_count,
            mapped.track_point_count,
        )
        self._post_commit(activity_file, name, data)
        return ImportOutcome(
            path=name, status=ImportStatus.imported, file_uuid=file_uuid, file_id=file_id
        )

    def _post_commit(self, activity_file: ActivityFile, name: str, data: bytes) -> None:
        for hook in self.hooks:
            try:
                hook(self.db, activity_file, name, data)
            except EnrichmentError as exc:
                logger.warning("Post-import step failed for %s: %s", name, exc)
            except Exception:
                logger.exception("Unexpected error in post-import step for %s", name)

    def _duplicate(self, name, file_uuid, file_id, error=None) -> ImportOutcome:
        logger.warning("Skipping %s, already imported as %s", name, file_uuid)
        return ImportOutcome(
            path=name,
            status=ImportStatus.duplicate,
            file_uuid=file_uuid,
            file_id=file_id,
            error=error,
        )


def _failed(name: str, error: str, file_uuid: Optional[str] = None) -> ImportOutcome:
    return ImportOutcome(path=name, status=ImportStatus.failed, file_uuid=file_uuid, error=error)


# --------- post-commit hooks --------- #

def archive_hook(data_dir: str | PathLike) -> PostCommitHook:
    def run(db, activity_file, filename, data):
        archive_file(activity_file, filename, data, data_dir)

    return run


def elevation_hook(provider: ElevationProvider) -> PostCommitHook:
    def run(db, activity_file, filename, data):
        update_elevation(db, provider, file_id=activity_file.id)

    return run


def route_image_hook(renderer: RouteRenderer, data_dir: str | PathLike) -> PostCommitHook:
    def run(db, activity_file, filename, data):
        save_route_image(db, renderer, activity_file, data_dir)

    return run


def coordinator_from_settings(
    db: Session,
    cfg: Settings = settings,
    archive: bool = True,
    elevation: bool = True,
    route_images: bool = False,
) -> ImportCoordinator:
    """Build a coordinator with the hooks the configuration enables.

    Raises ServiceConfigError when a configured service handler is unknown.
    """
    hooks: list[PostCommitHook] = []
    if archive:
        hooks.append(archive_hook(cfg.data_dir))
    elevation_cfg = cfg.service("elevation")
    if elevation and elevation_cfg is not None:
        hooks.append(elevation_hook(new_elevation_provider(elevation_cfg)))
    route_cfg = cfg.service("route_visualization")
    if route_images and route_cfg is not None:
        hooks.append(route_image_hook(new_route_renderer(route_cfg), cfg.data_dir))
    return ImportCoordinator(db, hooks=hooks)
