# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Copy entity sources into a per-run staging directory."""

import logging
import os
import shutil
import uuid
from collections.abc import Iterable
from pathlib import Path

from schemair.errors import StagingError

logger = logging.getLogger(__name__)

STAGING_PREFIX = "processed_entities_"


def stage_entity_files(
    project_path: Path,
    base_target_path: Path,
    entity_file_names: Iterable[str],
) -> Path:
    """Copy entity files into a fresh ``processed_entities_<uuid>`` directory.

    Files are matched by base name anywhere below ``project_path`` and copied
    flat; a later file with the same name overwrites an earlier one. A file
    that fails to copy is logged and skipped.

    Args:
        project_path: Working tree to copy from.
        base_target_path: Directory receiving the staging folder.
        entity_file_names: Base file names to copy (``Order.java``).

    Returns:
        The created staging directory, possibly empty.

    Raises:
        StagingError: If the staging directory cannot be created.
    """
    staging_dir = base_target_path / f"{STAGING_PREFIX}{uuid.uuid4()}"
    try:
        staging_dir.mkdir(parents=True)
    except OSError as exc:
        logger.warning(f"Staging directory creation failed (path={staging_dir} error={exc})")
        raise StagingError(f"Could not create staging directory {staging_dir}: {exc}") from exc
    logger.info(f"Created staging directory (path={staging_dir})")

    wanted = set(entity_file_names)
    if not wanted:
        logger.warning(f"No entity files to stage (project_path={project_path})")
        return staging_dir
    if not project_path.is_dir():
        logger.warning(f"Project path does not exist; staging nothing (project_path={project_path})")
        return staging_dir

    copied = 0
    for current, dir_names, file_names in os.walk(project_path):
        dir_names.sort()
        for file_name in sorted(file_names):
            if file_name not in wanted:
                continue
            source = Path(current) / file_name
            if not source.is_file():
                continue
            try:
                shutil.copyfile(source, staging_dir / file_name)
            except OSError as exc:
                logger.warning(f"Skipping entity file copy (path={source} error={exc})")
                continue
            copied += 1
    logger.info(f"Staged entity files (path={staging_dir} copied={copied})")
    return staging_dir


def delete_directory_recursively(path: Path) -> list[Path]:
    """Remove a directory tree bottom-up.

    A missing directory is a no-op. Paths that cannot be removed are logged
    and returned so callers can report incomplete cleanup.

    Args:
        path: Directory to remove.

    Returns:
        Paths that could not be removed.
    """
    if not path.exists():
        logger.debug(f"Directory to delete does not exist (path={path})")
        return []
    logger.info(f"Deleting directory recursively (path={path})")
    failed: list[Path] = []
    if not path.is_dir() or path.is_symlink():
        try:
            path.unlink()
        except OSError as exc:
            logger.warning(f"Failed to delete path (path={path} error={exc})")
            failed.append(path)
        return failed
    for current, dir_names, file_names in os.walk(path, topdown=False):
        current_path = Path(current)
        for file_name in file_names:
            _remove(current_path / file_name, failed, is_dir=False)
        for dir_name in dir_names:
            child = current_path / dir_name
            _remove(child, failed, is_dir=not child.is_symlink())
    _remove(path, failed, is_dir=True)
    if failed:
        logger.warning(f"Recursive delete left paths behind (path={path} failed={len(failed)})")
    return failed


def _remove(path: Path, failed: list[Path], is_dir: bool) -> None:
    try:
        if is_dir:
            path.rmdir()
        else:
            path.unlink()
    except OSError as exc:
        logger.warning(f"Failed to delete path (path={path} error={exc})")
        failed.append(path)
