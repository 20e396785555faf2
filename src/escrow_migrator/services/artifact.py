"""Durable checkpoint of a migration run.

The MigrationResult is rewritten in full after every committed batch. Writes
go to a temporary file in the same directory and are moved into place with
``os.replace`` so a crash never leaves a half-written artifact behind.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from escrow_migrator.core.errors import ArtifactError
from escrow_migrator.domain.models import MigrationResult

log = structlog.get_logger()


def artifact_filename(network: str, started_at: int) -> str:
    """Name of the artifact for a run, keyed by network and start time."""
    return f"rewards-out-{network}-{started_at}.json"


class ArtifactStore:
    """Reads and writes MigrationResult JSON documents."""

    def __init__(self, output_dir: Path, path: Optional[Path] = None):
        """Initialize the store.

        Args:
            output_dir: Directory the artifact lives in.
            path: Explicit artifact path; derived from the result when omitted.
        """
        self._output_dir = Path(output_dir)
        self._path = path
        self._saves = 0
        self._log = log.bind(component="artifact_store")

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def saves(self) -> int:
        """Number of checkpoints written by this store."""
        return self._saves

    def path_for(self, result: MigrationResult) -> Path:
        if self._path is None:
            self._path = self._output_dir / artifact_filename(result.network, result.started_at)
        return self._path

    def save(self, result: MigrationResult) -> Path:
        """Atomically write ``result`` and return the artifact path."""
        path = self.path_for(result)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(result.to_dict(), f, indent=2)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

        self._saves += 1
        self._log.debug(
            "checkpoint_saved",
            path=str(path),
            migrated=len(result.migrated_accounts),
            imported=len(result.imported_vested_entries),
        )
        return path

    @staticmethod
    def load(path: Path) -> MigrationResult:
        """Load and validate a persisted artifact.

        Raises:
            ArtifactError: If the file is missing, is not JSON, or does not
                match the artifact schema.
        """
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ArtifactError(f"Artifact not found: {path}", cause=e)
        except json.JSONDecodeError as e:
            raise ArtifactError(f"Artifact is not valid JSON: {path}", cause=e)

        try:
            return MigrationResult.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            raise ArtifactError(f"Artifact does not match schema: {path}", cause=e)
