"""
Installer error taxonomy.

Every terminal failure the installer can report derives from
``InstallerError``.  Per-candidate and per-strategy failures are
swallowed locally and never surface as these types; only the final
outcome of a resolution or an installation does.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shopinstall.core.models.install import InstallAttempt


class InstallerError(Exception):
    """Base class for all unrecoverable installer failures."""


class InvalidConfiguration(InstallerError):
    """Configuration is malformed or names an unknown method.

    Raised immediately, never retried.
    """


class RuntimeUnavailable(InstallerError):
    """No runtime candidate (fallback included) could be made ready."""


class PackageInstallFailed(InstallerError):
    """Every materialization strategy was exhausted."""

    def __init__(self, message: str, attempts: tuple[InstallAttempt, ...] = ()):
        super().__init__(message)
        self.attempts = attempts

    @property
    def log_references(self) -> list[str]:
        return [a.log_reference for a in self.attempts]


class PublishFailed(InstallerError):
    """A staged build could not be moved into the target.

    ``backup_path`` is set when prior contents had already been moved
    aside; ``restored`` tells whether they were put back.
    """

    def __init__(
        self,
        message: str,
        backup_path: str | None = None,
        restored: bool = False,
    ):
        super().__init__(message)
        self.backup_path = backup_path
        self.restored = restored
