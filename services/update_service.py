"""
services/update_service.py
---------------------------
Self-update: fetch release metadata, compare versions, download the
release archive, extract it over the installed files and reload the
modules that were replaced.

Each stage logs its own failures and lets the routine carry on to the
cleanup step instead of aborting the process.
"""

import importlib
import shutil
import sys
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import requests

from config import APP_NAME, APP_VERSION, INSTALL_DIR, UPDATE_METADATA_URL, UPDATE_TIMEOUT
from models.release import Release
from utils.logger import get_logger

logger = get_logger(__name__)

# Local files that an update must never overwrite.
_PRESERVED_FILES = {".env"}

STATUS_UP_TO_DATE = "up_to_date"
STATUS_UPDATED = "updated"
STATUS_FAILED = "failed"


@dataclass
class UpdateResult:
    """Outcome of a self-update run."""
    status: str
    version: Optional[str] = None
    files_copied: int = 0
    modules_reloaded: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status != STATUS_FAILED


class UpdateService:
    """
    Replaces the installed files with the latest published release.

    Responsibilities:
        - Ask the release-metadata endpoint for the latest release.
        - Decide whether it is newer than the running version.
        - Download, extract and copy the archive into the install directory.
        - Reload the already-imported modules that live there.
    """

    def __init__(
        self,
        metadata_url: Optional[str] = None,
        install_dir: Optional[Path] = None,
        current_version: str = APP_VERSION,
        timeout: int = UPDATE_TIMEOUT,
    ):
        self.metadata_url = metadata_url if metadata_url is not None else UPDATE_METADATA_URL
        self.install_dir = Path(install_dir or INSTALL_DIR).resolve()
        self.current_version = current_version
        self.timeout = timeout
        self._headers = {"Accept": "application/json", "User-Agent": f"{APP_NAME}/{current_version}"}

    # ── Stages ────────────────────────────────────────────

    def fetch_latest(self) -> Release:
        """
        Download and parse the latest release metadata.

        Raises:
            requests.RequestException: On network or HTTP errors.
            ValueError: If the payload is not a usable release description.
        """
        if not self.metadata_url:
            raise ValueError("No update metadata URL configured (UPDATE_METADATA_URL).")
        resp = requests.get(self.metadata_url, headers=self._headers, timeout=self.timeout)
        resp.raise_for_status()
        release = Release.from_metadata(resp.json())
        logger.info(f"Latest release: {release}")
        return release

    def download(self, release: Release, target_dir: Path) -> Path:
        """Stream the release archive into ``target_dir`` and return its path."""
        archive = target_dir / f"{APP_NAME}-{release.version}.zip"
        with requests.get(release.archive_url, headers=self._headers,
                          stream=True, timeout=self.timeout) as resp:
            resp.raise_for_status()
            with open(archive, "wb") as fh:
                for chunk in resp.iter_content(chunk_size=64 * 1024):
                    if chunk:
                        fh.write(chunk)
        logger.info(f"Downloaded {release.archive_url} ({archive.stat().st_size} bytes)")
        return archive

    def extract(self, archive: Path, target_dir: Path) -> Path:
        """
        Unzip ``archive`` and return the directory holding the release files.

        Archives generated from a source tree wrap everything in a single
        top-level folder; that folder is returned instead of ``target_dir``.
        """
        target_dir.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive) as zf:
            zf.extractall(target_dir)
        entries = [p for p in target_dir.iterdir() if p.name != "__MACOSX"]
        if len(entries) == 1 and entries[0].is_dir():
            return entries[0]
        return target_dir

    def copy_files(self, source_dir: Path, result: UpdateResult) -> None:
        """Copy every extracted file over the install directory."""
        for src in sorted(source_dir.rglob("*")):
            if not src.is_file() or src.name in _PRESERVED_FILES:
                continue
            dest = self.install_dir / src.relative_to(source_dir)
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(src, dest)
                result.files_copied += 1
            except OSError as e:
                logger.error(f"Failed to replace {dest}: {e}")
                result.errors.append(f"copy {dest}: {e}")
        logger.info(f"Replaced {result.files_copied} file(s) in {self.install_dir}")

    def reload_modules(self, result: UpdateResult) -> None:
        """
        Reload every imported module whose source lives in the install directory.

        Modules are reloaded in reverse import order so that dependencies
        are refreshed before the modules that import them.
        """
        importlib.invalidate_caches()
        for name, module in reversed(list(sys.modules.items())):
            if name == "__main__" or not self._is_installed(module):
                continue
            try:
                importlib.reload(module)
                result.modules_reloaded += 1
            except Exception as e:
                logger.error(f"Failed to reload module {name}: {e}")
                result.errors.append(f"reload {name}: {e}")
        logger.info(f"Reloaded {result.modules_reloaded} module(s).")

    def _is_installed(self, module) -> bool:
        path = getattr(module, "__file__", None)
        if not path:
            return False
        try:
            Path(path).resolve().relative_to(self.install_dir)
        except ValueError:
            return False
        return True

    # ── Entry points ──────────────────────────────────────

    def check_for_update(self) -> Optional[Release]:
        """
        Returns the latest release if it is newer than the running version,
        otherwise None.

        Raises:
            requests.RequestException: If the metadata cannot be fetched.
            ValueError: If the metadata is unusable or the versions cannot
                be compared.
        """
        release = self.fetch_latest()
        return release if release.is_newer_than(self.current_version) else None

    def self_update(self, force: bool = False) -> UpdateResult:
        """
        Run the whole update sequence.

        Args:
            force: Reinstall even when the latest release is not newer.

        Returns:
            An UpdateResult describing what happened.
        """
        # ── 1. Fetch metadata ─────────────────────────────
        try:
            release = self.fetch_latest()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to fetch release metadata: {e}")
            return UpdateResult(status=STATUS_FAILED, errors=[f"fetch: {e}"])

        # ── 2. Compare versions ───────────────────────────
        try:
            newer = release.is_newer_than(self.current_version)
        except ValueError as e:
            logger.warning(f"Cannot compare versions, assuming an update is needed: {e}")
            newer = True
        if not newer and not force:
            logger.info(f"{APP_NAME} {self.current_version} is up to date.")
            return UpdateResult(status=STATUS_UP_TO_DATE, version=self.current_version)

        result = UpdateResult(status=STATUS_FAILED, version=release.version)
        logger.info(f"Updating {APP_NAME} {self.current_version} -> {release.version}")

        with tempfile.TemporaryDirectory(prefix=f"{APP_NAME}-update-") as tmp:
            workdir = Path(tmp)

            # ── 3. Download ───────────────────────────────
            archive = None
            try:
                archive = self.download(release, workdir)
            except (requests.RequestException, OSError) as e:
                logger.error(f"Failed to download {release.archive_url}: {e}")
                result.errors.append(f"download: {e}")

            # ── 4. Extract ────────────────────────────────
            source_dir = None
            if archive is not None:
                try:
                    source_dir = self.extract(archive, workdir / "extracted")
                except (zipfile.BadZipFile, OSError) as e:
                    logger.error(f"Failed to extract {archive.name}: {e}")
                    result.errors.append(f"extract: {e}")

            # ── 5. Copy ───────────────────────────────────
            if source_dir is not None:
                self.copy_files(source_dir, result)

        # ── 6. Reload ─────────────────────────────────────
        if result.files_copied:
            self.reload_modules(result)
            result.status = STATUS_UPDATED
            logger.info(f"{APP_NAME} updated to {release.version}.")
        else:
            logger.error(f"{APP_NAME} update to {release.version} failed.")

        return result
