"""
Asset descriptor models — the declarative contract between modules and the engine.

A module's manifest function returns a list of ``AssetDescriptor``.
Each descriptor names one effect (copy, append, merge, ...) plus the
data that effect needs. Descriptors are immutable once produced.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Callable, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class OperationType(str, Enum):
    """Effect kind of an asset descriptor."""

    COPY = "copy"
    COPY_SAFE = "copy-safe"
    APPEND = "append"
    APPEND_ENV = "append-env"
    MERGE = "merge"
    DEPENDENCIES = "dependencies"


class Tag:
    """Conventional tag names used to group assets for selective install."""

    CONFIG = "config"
    MIGRATIONS = "migrations"
    WEBROOT = "webroot"
    BOOTSTRAP = "bootstrap"
    ENVS = "envs"
    DEPENDENCIES = "dependencies"


@dataclass(frozen=True)
class RawValue:
    """A config value written verbatim instead of as a Python literal.

    Use it for expressions that must survive into the config module
    unevaluated::

        "host": RawValue.raw('os.environ.get("REDIS_HOST", "127.0.0.1")')
    """

    code: str

    @classmethod
    def raw(cls, code: str) -> RawValue:
        return cls(code)


# ── Conditions ──────────────────────────────────────────────────


class AlwaysCondition(BaseModel):
    """No condition: the dependency always applies."""

    kind: Literal["always"] = "always"


class FileExists(BaseModel):
    """Met when ``path`` (relative to the app root) exists."""

    kind: Literal["file_exists"] = "file_exists"
    path: str


class ConfigKeyExists(BaseModel):
    """Met when the dot-path ``key`` exists in the app config module."""

    kind: Literal["config_key_exists"] = "config_key_exists"
    key: str


class Predicate(BaseModel):
    """Met when the injected zero-argument callable returns a truthy value."""

    kind: Literal["predicate"] = "predicate"
    fn: Callable[[], bool]


Condition = Annotated[
    Union[AlwaysCondition, FileExists, ConfigKeyExists, Predicate],
    Field(discriminator="kind"),
]


class DependencyConfig(BaseModel):
    """How a module depends on another module."""

    required: bool = False
    tags: list[str] | None = None      # None = all tags
    reason: str = "No reason provided"
    prompt: str | None = None
    condition: Condition = Field(default_factory=AlwaysCondition)

    @field_validator("condition", mode="before")
    @classmethod
    def _coerce_condition(cls, value: Any) -> Any:
        if value is None:
            return AlwaysCondition()
        if callable(value) and not isinstance(value, BaseModel):
            return Predicate(fn=value)
        return value

    @property
    def has_condition(self) -> bool:
        return not isinstance(self.condition, AlwaysCondition)

    def prompt_for(self, module: str) -> str:
        """Prompt text shown when asking whether to install ``module``."""
        return self.prompt or f"Install {module} module assets?"

    def snapshot(self) -> dict[str, Any]:
        """Serializable view stored with a recorded dependency edge."""
        return {
            "required": self.required,
            "tags": list(self.tags) if self.tags is not None else None,
            "reason": self.reason,
        }


class AssetDescriptor(BaseModel):
    """One installable effect declared by a module.

    Which fields matter depends on ``operation_type``:

        copy / copy-safe   source, destination, options
        append             destination, content, marker
        append-env         destination, env_vars, comment
        merge              destination, key, value
        dependencies       dependencies
    """

    model_config = ConfigDict(frozen=True)

    operation_type: OperationType = Field(
        default=OperationType.COPY,
        validation_alias=AliasChoices("operation_type", "type"),
    )
    tag: str = "default"
    source: str | None = None
    destination: str | None = None
    content: str | None = None
    marker: str | None = None
    comment: str | None = None
    env_vars: dict[str, str] = Field(default_factory=dict)
    key: str | None = None
    value: Any = None
    dependencies: dict[str, DependencyConfig] = Field(default_factory=dict)
    options: dict[str, Any] = Field(default_factory=dict)
    module: str = Field(default="", validation_alias=AliasChoices("module", "plugin"))

    @property
    def is_dependencies(self) -> bool:
        return self.operation_type == OperationType.DEPENDENCIES

    def with_module(self, module: str) -> AssetDescriptor:
        """Return a copy stamped with the owning module's name."""
        return self.model_copy(update={"module": module})
