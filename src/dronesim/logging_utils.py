# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

"""
Utilities to configure and retrieve simulation loggers.

Every component logs under the `sim.` namespace. File logging is switched
on from the `logging` block of the config; records then go to a
deflate-compressed ZIP archive under `<root>/logs/`, created only when the
first record arrives, and the config used for the run is copied next to it
and indexed by hash in a CSV file.
"""
from __future__ import annotations

import csv
import hashlib
import io
import logging
import shutil
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_NAMESPACE = "sim"
HASH_LENGTH = 12
LOG_DIRNAME = "logs"
CONFIGS_SUBDIR = "configs"
HASH_MAP_FILENAME = "logs_configs_mapping.csv"


def _coerce_level(value: Any, default: int = logging.INFO) -> int:
    """
    Return a valid logging level from either a string or an integer.
    Falls back to `default` when the input is not recognised.
    """
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        level = logging.getLevelName(value.strip().upper())
        if isinstance(level, int):
            return level
    return default


@dataclass
class _LogArtifacts:
    """Where a run's archive goes and which config produced it."""
    archive_path: Path
    inner_name: str
    timestamp: str
    log_dir: Path
    project_root: Path
    config_path: Optional[Path] = None
    config_hash: Optional[str] = None
    finalized: bool = False

    def finalize(self) -> None:
        """Copy the config next to the logs and index it; runs once."""
        if self.finalized:
            return
        self.finalized = True
        if not (self.config_path and self.config_hash):
            return
        configs_dir = self.log_dir / CONFIGS_SUBDIR
        configs_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(self.config_path, configs_dir / f"{self.timestamp}_{self.config_hash}_{self.config_path.name}")
        _update_hash_mapping(self.log_dir / HASH_MAP_FILENAME, self.config_hash, self.archive_path, self.project_root)


def configure_logging(
    settings: Optional[Dict[str, Any]] = None,
    config_path: Optional[str | Path] = None,
    project_root: Optional[str | Path] = None,
) -> Optional[Path]:
    """
    Configure Python logging based on the configuration dictionary.

    Parameters
    ----------
    settings:
        The `logging` block of the config. Supported keys:
        - enabled (bool): turn file logging on/off (default: False)
        - level (str|int): logging level for console (default: "INFO")
        - file_level (str|int): logging level for persisted log (default: level)
        - to_console (bool): echo logs to stderr (default: enabled)
    config_path:
        Path to the configuration file being used for the simulation.
    project_root:
        Directory the `logs/` folder is created in (default: working directory).

    Returns the archive path when file logging is enabled.
    """
    settings = settings or {}
    enabled = bool(settings.get("enabled", False))
    console_level = _coerce_level(settings.get("level", "INFO" if enabled else "WARNING"))
    file_level = _coerce_level(settings.get("file_level", settings.get("level", "WARNING")))

    handlers: list[logging.Handler] = []
    if settings.get("to_console", enabled):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_level)
        handlers.append(console_handler)

    archive_path = None
    if enabled:
        artifacts = _prepare_log_artifacts(config_path, project_root)
        archive_path = artifacts.archive_path
        handlers.append(_CompressedLogHandler(artifacts, level=file_level))

    if not handlers:
        null_handler = logging.NullHandler()
        null_handler.setLevel(console_level)
        handlers.append(null_handler)

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)

    effective_level = min(handler.level for handler in handlers)
    logging.basicConfig(level=effective_level, handlers=handlers, force=True)
    logging.getLogger(LOG_NAMESPACE).setLevel(effective_level)
    return archive_path


def _prepare_log_artifacts(
    config_path: Optional[str | Path],
    project_root: Optional[str | Path],
) -> _LogArtifacts:
    """
    Compute log paths and metadata. Only the logs directory is created here;
    the archive and the config copy are deferred to the first record.
    """
    root = Path(project_root).resolve() if project_root else Path.cwd()
    log_dir = root / LOG_DIRNAME
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    cfg_path = None
    cfg_hash = None
    if config_path:
        try:
            cfg_path = Path(config_path).expanduser().resolve(strict=True)
            cfg_hash = hashlib.sha256(cfg_path.read_bytes()).hexdigest()[:HASH_LENGTH]
        except FileNotFoundError:
            cfg_path = None
            cfg_hash = None

    stem = f"{timestamp}_{cfg_hash}" if cfg_hash else timestamp
    inner_name = f"{stem}.log"
    return _LogArtifacts(
        archive_path=log_dir / f"{inner_name}.zip",
        inner_name=inner_name,
        timestamp=timestamp,
        log_dir=log_dir,
        project_root=root,
        config_path=cfg_path,
        config_hash=cfg_hash,
    )


def _update_hash_mapping(mapping_file: Path, cfg_hash: str, log_path: Path, project_root: Path) -> None:
    """
    Append a row to the CSV file that maps config hashes to log archives.
    """
    mapping_file.parent.mkdir(parents=True, exist_ok=True)
    need_header = not mapping_file.exists()
    try:
        rel_path = f"{project_root.name}/{log_path.relative_to(project_root).as_posix()}"
    except ValueError:
        rel_path = str(log_path.resolve())
    with mapping_file.open("a", newline="", encoding="utf-8") as csvfile:
        writer = csv.writer(csvfile)
        if need_header:
            writer.writerow(["hash", "log_path"])
        writer.writerow([cfg_hash, rel_path])


def get_logger(component: str) -> logging.Logger:
    """
    Return a namespaced logger for the given component.
    """
    component = component.strip(".")
    name = f"{LOG_NAMESPACE}.{component}" if component else LOG_NAMESPACE
    return logging.getLogger(name)


class _CompressedLogHandler(logging.Handler):
    """
    Deferred handler that writes logs inside a ZIP archive with maximum compression.
    The archive and config artifacts are created only when the first record arrives.
    """

    terminator = "\n"

    def __init__(self, artifacts: _LogArtifacts, level: int) -> None:
        super().__init__(level)
        self.artifacts = artifacts
        self._zip: Optional[zipfile.ZipFile] = None
        self._stream: Optional[io.TextIOWrapper] = None

    def emit(self, record: logging.LogRecord) -> None:
        try:
            stream = self._ensure_stream()
            stream.write(self.format(record) + self.terminator)
            stream.flush()
        except Exception:
            self.handleError(record)

    def _ensure_stream(self) -> io.TextIOWrapper:
        if self._stream is None:
            self._activate()
        return self._stream

    def _activate(self) -> None:
        archive_path = self.artifacts.archive_path
        archive_path.parent.mkdir(parents=True, exist_ok=True)
        self._zip = zipfile.ZipFile(archive_path, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=9)
        self._stream = io.TextIOWrapper(self._zip.open(self.artifacts.inner_name, mode="w"), encoding="utf-8")
        self.artifacts.finalize()

    def flush(self) -> None:
        if self._stream:
            self._stream.flush()

    def close(self) -> None:
        try:
            if self._stream:
                self._stream.close()
            if self._zip:
                self._zip.close()
        finally:
            self._stream = None
            self._zip = None
        super().close()
