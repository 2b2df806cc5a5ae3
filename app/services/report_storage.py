"""
Ledger Reports - Report Storage

Local disk storage for rendered report files, plus the retention sweep that
removes old ones.
"""

import logging
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from app.config import Settings, get_settings
from app.utils.error_handling import ArtifactMissingException

logger = logging.getLogger(__name__)


class ReportStorage:
    """Writes artifacts under ``<base_path>/<directory>``."""

    disk = "local"

    def __init__(
        self,
        base_path: str,
        directory: str = "reports",
        retention_days: int = 2,
    ):
        self.base_path = Path(base_path)
        self.directory = directory
        self.retention_days = retention_days

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "ReportStorage":
        config = config or get_settings()
        return cls(
            base_path=config.report_storage_path,
            directory=config.report_directory,
            retention_days=config.report_retention_days,
        )

    @property
    def report_dir(self) -> Path:
        return self.base_path / self.directory

    def absolute_path(self, relative_path: str) -> Path:
        return self.base_path / relative_path

    def target_for(self, base_name: str, extension: str, now: Optional[datetime] = None) -> str:
        """Unique relative path such as ``reports/gl_20250210_101500_<uuid>.pdf``."""
        stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        return f"{self.directory}/{base_name}_{stamp}_{uuid.uuid4()}.{extension}"

    def save(self, relative_path: str, content: bytes) -> Path:
        file_path = self.absolute_path(relative_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "wb") as f:
            f.write(content)
        logger.info(f"Report written to {file_path} ({len(content)} bytes)")
        return file_path

    def exists(self, relative_path: str) -> bool:
        return self.absolute_path(relative_path).is_file()

    def read(self, relative_path: str) -> bytes:
        file_path = self.absolute_path(relative_path)
        try:
            with open(file_path, "rb") as f:
                return f.read()
        except FileNotFoundError as exc:
            logger.warning(f"Report file missing: {file_path}")
            raise ArtifactMissingException(relative_path) from exc

    def prune(self, now: Optional[float] = None) -> int:
        """Delete report files older than the retention window. Returns the count removed."""
        if not self.report_dir.is_dir():
            return 0

        cutoff = (now if now is not None else time.time()) - self.retention_days * 86400
        removed = 0
        for file_path in self.report_dir.iterdir():
            if not file_path.is_file():
                continue
            try:
                if file_path.stat().st_mtime < cutoff:
                    file_path.unlink()
                    removed += 1
            except FileNotFoundError:
                # Already removed by a concurrent sweep
                continue

        if removed:
            logger.info(f"Pruned {removed} report files older than {self.retention_days} days")
        return removed
