"""
Staging and publish — the only code that writes to the install target.

Publish sequence:
    1. copy the staged build into a hidden "incoming" sibling of the
       target (same filesystem, so step 3 is a rename)
    2. rename non-empty prior contents to ``<target>.bak.<UTC stamp>``
    3. rename incoming onto the target

A failure in 1 or 2 leaves the target untouched.  A failure in 3
renames the backup back and raises ``PublishFailed``.  Backups are
never deleted.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
import tempfile
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Iterator

from shopinstall.core.errors import InvalidConfiguration, PublishFailed
from shopinstall.core.models.install import InstallationTarget
from shopinstall.core.observability.logging_config import log_success

logger = logging.getLogger(__name__)

STAGE_PREFIX = "shopinstall-stage-"

# Never published (matches the rsync exclude of the shell installer)
_PUBLISH_IGNORE = shutil.ignore_patterns(".git")


@contextmanager
def staging_area(base_dir: str | Path | None = None) -> Iterator[Path]:
    """Create a fresh staging directory and always remove it afterwards."""
    path = Path(tempfile.mkdtemp(prefix=STAGE_PREFIX, dir=base_dir))
    logger.debug("Using temporary build dir: %s", path)
    try:
        yield path
    finally:
        remove_tree(path)


def remove_tree(path: Path) -> None:
    """Delete a directory tree, logging (not raising) on failure."""
    if not path.exists():
        return

    def _on_error(func, failed_path, exc):
        err = exc[1] if isinstance(exc, tuple) else exc
        logger.warning("Could not remove %s: %s", failed_path, err)

    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_on_error)
    else:
        shutil.rmtree(path, onerror=_on_error)


def check_target(target: Path) -> None:
    """Validate the target before any work is done.

    Raises:
        InvalidConfiguration: If the target is not a usable directory.
    """
    if target.exists() and not target.is_dir():
        raise InvalidConfiguration(f"Target exists but is not a directory: {target}")
    if target.is_dir() and not os.access(target, os.W_OK | os.X_OK):
        raise InvalidConfiguration(f"Target directory is not writable: {target}")

    # The target itself gets replaced, so its parent must be writable
    ancestor = target.parent
    while not ancestor.exists() and ancestor != ancestor.parent:
        ancestor = ancestor.parent
    if not os.access(ancestor, os.W_OK | os.X_OK):
        raise InvalidConfiguration(f"Cannot create or replace {target}: {ancestor} is not writable")


def has_contents(target: Path) -> bool:
    return target.is_dir() and any(target.iterdir())


def backup_path_for(target: Path, now: datetime | None = None) -> Path:
    """Timestamped backup path that does not exist yet."""
    stamp = (now or datetime.now(UTC)).strftime("%Y%m%dT%H%M%SZ")
    candidate = target.with_name(f"{target.name}.bak.{stamp}")
    n = 1
    while candidate.exists():
        candidate = target.with_name(f"{target.name}.bak.{stamp}-{n}")
        n += 1
    return candidate


def publish(staged: Path, target: Path, now: datetime | None = None) -> InstallationTarget:
    """Replace ``target`` with the contents of ``staged``.

    Args:
        staged: Directory holding the successful build.
        target: Install target; created if missing.
        now: Timestamp for the backup name (default: current UTC time).

    Returns:
        The populated target, with the backup path if one was taken.

    Raises:
        InvalidConfiguration: If the target is not a directory.
        PublishFailed: If the build could not be moved into place.
    """
    target = Path(target).expanduser().resolve()
    if target.exists() and not target.is_dir():
        raise InvalidConfiguration(f"Target exists but is not a directory: {target}")

    parent = target.parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
        incoming = Path(tempfile.mkdtemp(prefix=f".{target.name}.incoming-", dir=parent))
    except OSError as e:
        raise PublishFailed(f"Cannot prepare {parent} for publish: {e}") from e

    # ── 1. Copy next to the target ──────────────────────────────
    try:
        shutil.copytree(
            staged, incoming, symlinks=True, ignore=_PUBLISH_IGNORE, dirs_exist_ok=True
        )
        mode = target.stat().st_mode if target.is_dir() else 0o755
        os.chmod(incoming, mode & 0o7777)
    except OSError as e:
        remove_tree(incoming)
        raise PublishFailed(f"Copying build into {parent} failed: {e}") from e

    # ── 2. Move prior contents aside ────────────────────────────
    backup: Path | None = None
    was_empty_dir = False
    try:
        if has_contents(target):
            backup = backup_path_for(target, now)
            logger.info("Backing up existing %s to %s", target, backup)
            os.rename(target, backup)
        elif target.is_dir():
            was_empty_dir = True
            target.rmdir()
    except OSError as e:
        remove_tree(incoming)
        raise PublishFailed(f"Could not move existing {target} aside: {e}") from e

    # ── 3. Swap in ──────────────────────────────────────────────
    try:
        os.rename(incoming, target)
    except OSError as e:
        restored = _restore(target, backup, was_empty_dir)
        remove_tree(incoming)
        if backup is not None and restored:
            logger.error("Publish failed; restored previous contents from %s", backup)
        elif backup is not None:
            logger.error("Publish failed; previous contents remain in %s", backup)
        raise PublishFailed(
            f"Moving build into {target} failed: {e}",
            backup_path=str(backup) if backup else None,
            restored=restored,
        ) from e

    log_success(logger, "Files moved to %s", target)
    return InstallationTarget(
        path=str(target),
        prior_contents_backup_path=str(backup) if backup else None,
    )


def _restore(target: Path, backup: Path | None, was_empty_dir: bool) -> bool:
    try:
        if backup is not None:
            os.rename(backup, target)
        elif was_empty_dir:
            target.mkdir(exist_ok=True)
        return True
    except OSError as e:
        logger.error("Could not restore %s: %s", target, e)
        return False
