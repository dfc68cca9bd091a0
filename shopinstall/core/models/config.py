"""
Installer configuration model.

One validated object carries every setting the installer reads from
flags, environment variables, and shopinstall.yml.  It is built once by the
config loader and passed to the resolver and the installer.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from shopinstall.core.errors import InvalidConfiguration
from shopinstall.core.models.runtime import RuntimeMethod

DEFAULT_PACKAGE = "shopware/production"
DEFAULT_TARGET = "/var/www/html"

# Container engines get a longer grace period than lighter daemons
DEFAULT_MAX_WAIT: dict[RuntimeMethod, float] = {
    RuntimeMethod.CONTAINER_ENGINE: 60.0,
    RuntimeMethod.LIGHTWEIGHT_VM_RUNTIME: 45.0,
    RuntimeMethod.ALTERNATE_CONTAINER_DAEMON: 30.0,
    RuntimeMethod.LOCAL_TOOLCHAIN: 0.0,
}

# Poll interval must stay at most 1/20 of any start wait window
MIN_WAIT_TO_POLL_RATIO = 20

_PACKAGE_RE = re.compile(r"^[a-z0-9]([_.-]?[a-z0-9]+)*/[a-z0-9](([_.]|-{1,2})?[a-z0-9]+)*$")


class InstallerConfig(BaseModel):
    """Validated installer settings."""

    method: RuntimeMethod | None = None
    fallback_enabled: bool = True
    local_fallback_enabled: bool = True
    auto_yes: bool = False

    package: str = DEFAULT_PACKAGE
    version: str = "latest"
    target_path: str = DEFAULT_TARGET
    retry_count: int = Field(default=3, ge=1, le=10)

    poll_interval: float = Field(default=1.0, gt=0)
    max_wait: dict[RuntimeMethod, float] = Field(
        default_factory=lambda: dict(DEFAULT_MAX_WAIT)
    )
    composer_image: str = "composer:2"
    log_dir: str | None = None

    @field_validator("method", mode="before")
    @classmethod
    def _parse_method(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        try:
            return RuntimeMethod.parse(value)
        except InvalidConfiguration as e:
            raise ValueError(str(e)) from None

    @field_validator("max_wait", mode="before")
    @classmethod
    def _merge_max_wait(cls, value: Any) -> Any:
        if value is None:
            return dict(DEFAULT_MAX_WAIT)
        if not isinstance(value, dict):
            raise ValueError("max_wait must be a mapping of method → seconds")
        merged = dict(DEFAULT_MAX_WAIT)
        for key, seconds in value.items():
            try:
                merged[RuntimeMethod.parse(key)] = float(seconds)
            except InvalidConfiguration as e:
                raise ValueError(str(e)) from None
        return merged

    @field_validator("package")
    @classmethod
    def _check_package(cls, value: str) -> str:
        value = value.strip()
        if not _PACKAGE_RE.match(value):
            raise ValueError(f"Package must look like 'vendor/name', got '{value}'")
        return value

    @field_validator("version", "target_path")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @model_validator(mode="after")
    def _check_wait_ratio(self) -> InstallerConfig:
        floor = self.poll_interval * MIN_WAIT_TO_POLL_RATIO
        for method, seconds in self.max_wait.items():
            if seconds < 0:
                raise ValueError(f"max_wait for {method.value} must not be negative")
            if method.uses_containers and seconds < floor:
                raise ValueError(
                    f"max_wait for {method.value} ({seconds}s) must be at least "
                    f"{MIN_WAIT_TO_POLL_RATIO}× poll_interval ({floor}s)"
                )
        return self

    @property
    def package_spec(self) -> str:
        """Composer package argument, e.g. ``vendor/name:6.6.10.0``."""
        if self.version.lower() == "latest":
            return self.package
        return f"{self.package}:{self.version}"

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["max_wait"] = {m.value: s for m, s in self.max_wait.items()}
        return data
