"""Zip archives of build output."""
from __future__ import annotations

import zipfile
from datetime import date
from pathlib import Path
from typing import Optional

from wordpressify.utils.diagnostics import MissingPrerequisiteError


def backup_name(day: Optional[date] = None) -> str:
    """Backup file name in day.month.year form, e.g. 19.10.2026.zip."""
    day = day or date.today()
    return day.strftime("%d.%m.%Y") + ".zip"


def zip_tree(source_dir: Path, archive_path: Path) -> Path:
    """Write every file below source_dir into archive_path, paths relative to source_dir."""
    if not source_dir.is_dir():
        raise MissingPrerequisiteError(f"Nothing to archive: {source_dir} does not exist.")

    archive_path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(source_dir.rglob("*")):
            if path.is_file() and path != archive_path:
                archive.write(path, path.relative_to(source_dir).as_posix())
    return archive_path
