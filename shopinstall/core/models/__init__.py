"""
Domain models — runtime resolution and package installation types.

    from shopinstall.core.models import RuntimeMethod, InstallAttempt, Strategy
"""

from shopinstall.core.models.install import (
    InstallationTarget,
    InstallAttempt,
    InstallResult,
    InstallState,
    Strategy,
)
from shopinstall.core.models.runtime import (
    UNIVERSAL_FALLBACK,
    ResolutionResult,
    RuntimeCandidate,
    RuntimeMethod,
)

__all__ = [
    # install.py
    "InstallAttempt",
    "InstallResult",
    "InstallState",
    "InstallationTarget",
    "Strategy",
    # runtime.py
    "ResolutionResult",
    "RuntimeCandidate",
    "RuntimeMethod",
    "UNIVERSAL_FALLBACK",
]
