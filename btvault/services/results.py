from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from loguru import logger
from pydantic import ValidationError

from btvault.adapters.storage import read_entries, read_entry, unique_file_name, write_archive
from btvault.backtest.statistics import read_statistics
from btvault.core.exceptions import ResultDecodeError
from btvault.core.models import BacktestModel, BacktestResult
from btvault.logging_utils import logging_context
from btvault.settings import LOG_ENTRY, RESULT_ENTRY, get_storage_settings

PathArg = Union[str, Path]


def _strip_bom(text: str) -> str:
    return text[1:] if text.startswith("\ufeff") else text


def decode_result(text: str) -> BacktestResult:
    """Parse a result document; schema or JSON errors raise ResultDecodeError."""
    try:
        return BacktestResult.model_validate_json(_strip_bom(text))
    except ValidationError as exc:
        raise ResultDecodeError(
            f"result document is invalid ({exc.error_count()} error(s)): {exc.errors()[0]['msg']}"
        ) from exc


def _is_empty_document(text: str) -> bool:
    stripped = _strip_bom(text).strip()
    return not stripped or stripped == "null"


@dataclass
class ArchiveContents:
    logs: str
    result: BacktestResult


class ResultStore:
    """
    Writes run logs and result documents into uniquely named archives.

    All writers of one archive directory must share the same store (or pass the
    same ``lock``): the unique-name check and the archive write happen under it.
    """

    def __init__(
        self,
        root: Optional[PathArg] = None,
        *,
        folder: Optional[str] = None,
        template: Optional[str] = None,
        lock: Optional[threading.Lock] = None,
    ) -> None:
        storage = get_storage_settings()
        self.root = Path(root) if root is not None else storage.data_dir
        self.folder = folder or storage.backtests_folder
        self.template = template or storage.archive_template
        self._lock = lock or threading.Lock()

    @property
    def archive_dir(self) -> Path:
        return self.root / self.folder

    def _write_locked(self, logs: Optional[str], result: Optional[str]) -> str:
        directory = self.archive_dir
        directory.mkdir(parents=True, exist_ok=True)
        while True:
            path = unique_file_name(directory / self.template)
            try:
                write_archive(path, {LOG_ENTRY: logs, RESULT_ENTRY: result})
                break
            except FileExistsError:
                # claimed by another process between the check and the create
                logger.debug("[store] {} taken, trying next name", path.name)
        return path.relative_to(self.root).as_posix()

    def write_archive(self, logs: Optional[str], result: Optional[str]) -> str:
        """Archive both texts; returns the path relative to the program-data root."""
        with self._lock:
            relative = self._write_locked(logs, result)
        logger.info("[store] archived {}", relative)
        return relative

    def persist(self, model: BacktestModel) -> Optional[str]:
        """
        Move a finished run's logs and result into an archive, read its statistics,
        and clear the in-memory texts. Returns the archive's relative path.
        """
        if model.result is None:
            return None

        with logging_context(backtest=model.name):
            with self._lock:
                model.zip_file = self._write_locked(model.logs, model.result)
            logger.info("[store] archived {}", model.zip_file)

            result = decode_result(model.result)
            model.statistics = read_statistics(result).to_dict()
            model.result = ""
            model.logs = ""
        return model.zip_file


class ResultIngest:
    """Reads archives written by ResultStore. Readers are never serialized."""

    def __init__(self, root: Optional[PathArg] = None) -> None:
        self.root = Path(root) if root is not None else get_storage_settings().data_dir

    def resolve(self, zip_file: PathArg) -> Path:
        path = Path(zip_file)
        return path if path.is_absolute() else self.root / path

    def load(self, zip_file: Optional[PathArg]) -> Optional[ArchiveContents]:
        """
        Decode an archive's result document and logs.

        Returns None when there is no archive or no result entry; an undecodable
        result document raises ResultDecodeError.
        """
        if not zip_file:
            return None
        path = self.resolve(zip_file)
        entries = read_entries(path)
        text = entries.get(RESULT_ENTRY)
        if text is None or _is_empty_document(text):
            logger.debug("[ingest] no result document in {}", path)
            return None

        result = decode_result(text)
        return ArchiveContents(logs=entries.get(LOG_ENTRY, ""), result=result)

    def load_logs(self, zip_file: Optional[PathArg]) -> Optional[str]:
        """Only the log text, without decoding the result document."""
        if not zip_file:
            return None
        return read_entry(self.resolve(zip_file), LOG_ENTRY)


__all__ = ["ArchiveContents", "ResultIngest", "ResultStore", "decode_result"]
