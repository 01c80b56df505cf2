# btvault/adapters/storage/archive.py
"""
Thin helpers around zip containers holding backtest logs and result documents.

Public API (re-exported via btvault.adapters.storage.__init__):
- unique_file_name(template) -> Path
- write_archive(path, entries) -> Path
- read_entry(path, name) -> str | None
- read_entries(path) -> dict[str, str]

Notes:
- Archives are created in exclusive mode, so an existing file is never overwritten.
- Text is stored and read as UTF-8 exactly; undecodable entries raise ArchiveError.
"""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Dict, Mapping, Optional

from loguru import logger

from btvault.core.exceptions import ArchiveError


def unique_file_name(template: Path) -> Path:
    """
    First free ``<stem><n><suffix>`` next to ``template`` for n = 1, 2, ...

    e.g. "Backtests/backtest.zip" -> "Backtests/backtest1.zip".
    """
    template = Path(template)
    count = 0
    while True:
        count += 1
        candidate = template.with_name(f"{template.stem}{count}{template.suffix}")
        if not candidate.exists():
            return candidate


def write_archive(path: Path, entries: Mapping[str, Optional[str]]) -> Path:
    """
    Create a new deflated zip at ``path`` with one text entry per mapping item.

    Raises FileExistsError when ``path`` already exists; a partially written file
    is removed before the error propagates.
    """
    path = Path(path)
    try:
        with zipfile.ZipFile(path, mode="x", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, text in entries.items():
                zf.writestr(name, (text or "").encode("utf-8"))
    except FileExistsError:
        raise
    except Exception:
        path.unlink(missing_ok=True)
        raise
    logger.debug("[archive] wrote {} ({} entries)", path, len(entries))
    return path


def _open(path: Path) -> Optional[zipfile.ZipFile]:
    if not path.is_file():
        logger.debug("[archive] {} not found", path)
        return None
    try:
        return zipfile.ZipFile(path, mode="r")
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"{path} is not a valid archive: {exc}") from exc


def _decode(path: Path, name: str, data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ArchiveError(f"{path}: entry {name} is not UTF-8 text: {exc}") from exc


def read_entry(path: Path, name: str) -> Optional[str]:
    """Load one entry as text; returns None if the archive or the entry is missing."""
    zf = _open(Path(path))
    if zf is None:
        return None
    with zf:
        if name not in zf.namelist():
            logger.debug("[archive] {} has no entry {}", path, name)
            return None
        return _decode(path, name, zf.read(name))


def read_entries(path: Path) -> Dict[str, str]:
    """Load every entry as text; empty when the archive is missing."""
    zf = _open(Path(path))
    if zf is None:
        return {}
    with zf:
        return {name: _decode(path, name, zf.read(name)) for name in zf.namelist()}
