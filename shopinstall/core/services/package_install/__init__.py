"""
Package install — materialize a package into a target directory.

Strategies escalate from pre-built archives to source checkouts to an
isolated throwaway project.  Every attempt runs in a staging area; the
target is only touched by the backup-first publish of the first
successful attempt.
"""

from shopinstall.core.services.package_install.composer import (
    ComposerMaterializer,
    ContainerComposer,
    LocalComposer,
)
from shopinstall.core.services.package_install.installer import PackageInstaller
from shopinstall.core.services.package_install.staging import publish, staging_area
from shopinstall.core.services.package_install.strategies import (
    Materializer,
    MaterializeOutcome,
    StrategyStep,
    build_strategy_plan,
)

__all__ = [
    "ComposerMaterializer",
    "ContainerComposer",
    "LocalComposer",
    "MaterializeOutcome",
    "Materializer",
    "PackageInstaller",
    "StrategyStep",
    "build_strategy_plan",
    "publish",
    "staging_area",
]
