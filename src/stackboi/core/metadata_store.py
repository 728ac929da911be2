"""Persistence of stacks and settings in `.stackboi.json`.

The file lives at the repository root and is rewritten in full on every
change. Writing is deterministic (fixed key order, 2-space indent, trailing
newline) so that loading and saving an unchanged file reproduces it byte for byte.
"""

import json
import logging
from pathlib import Path
from typing import Any

from stackboi.core.errors import ConfigInvalidError, ConfigMissingError
from stackboi.core.models import SCHEMA_VERSION, RerereSettings, Settings, Stack, StackSet

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".stackboi.json"


def _require(data: dict[str, Any], key: str, expected: type, where: str) -> Any:
    if key not in data:
        raise ConfigInvalidError(f"{CONFIG_FILENAME}: missing '{key}' in {where}")
    value = data[key]
    # bool is a subclass of int; a version of `true` is not a version
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise ConfigInvalidError(
            f"{CONFIG_FILENAME}: '{key}' in {where} must be {expected.__name__}, "
            f"got {type(value).__name__}"
        )
    return value


def _parse_stack(raw: Any, index: int) -> Stack:
    where = f"stacks[{index}]"
    if not isinstance(raw, dict):
        raise ConfigInvalidError(f"{CONFIG_FILENAME}: {where} must be an object")
    name = _require(raw, "name", str, where)
    base_branch = _require(raw, "baseBranch", str, where)
    branches = _require(raw, "branches", list, where)
    if not all(isinstance(branch, str) for branch in branches):
        raise ConfigInvalidError(f"{CONFIG_FILENAME}: {where}.branches must contain only strings")
    if base_branch in branches:
        raise ConfigInvalidError(
            f"{CONFIG_FILENAME}: stack '{name}' lists its base branch '{base_branch}' "
            "among its branches"
        )
    return Stack(name=name, base_branch=base_branch, branches=tuple(branches))


def _parse_settings(raw: dict[str, Any]) -> Settings:
    rerere_raw = _require(raw, "rerere", dict, "settings")
    return Settings(
        rerere=RerereSettings(
            enabled=_require(rerere_raw, "enabled", bool, "settings.rerere"),
            auto_apply=_require(rerere_raw, "autoupdate", bool, "settings.rerere"),
        ),
        default_base_branch=_require(raw, "defaultBaseBranch", str, "settings"),
        poll_interval_ms=_require(raw, "pollIntervalMs", int, "settings"),
    )


def parse_stack_set(data: Any) -> StackSet:
    """Build a StackSet from decoded JSON, validating shape and stack invariants.

    Raises:
        ConfigInvalidError: If a field is missing or ill-typed, the version is
            unknown, a stack contains its own base branch, or a branch belongs to
            more than one stack
    """
    if not isinstance(data, dict):
        raise ConfigInvalidError(f"{CONFIG_FILENAME}: top level must be an object")

    version = _require(data, "version", int, "top level")
    if version != SCHEMA_VERSION:
        raise ConfigInvalidError(
            f"{CONFIG_FILENAME}: unsupported version {version} (expected {SCHEMA_VERSION})"
        )

    raw_stacks = _require(data, "stacks", list, "top level")
    stacks = tuple(_parse_stack(raw, i) for i, raw in enumerate(raw_stacks))

    owners: dict[str, str] = {}
    for stack in stacks:
        for branch in stack.branches:
            if branch in owners:
                raise ConfigInvalidError(
                    f"{CONFIG_FILENAME}: branch '{branch}' is tracked by both "
                    f"'{owners[branch]}' and '{stack.name}'"
                )
            owners[branch] = stack.name

    settings = _parse_settings(_require(data, "settings", dict, "top level"))
    return StackSet(version=version, stacks=stacks, settings=settings)


def serialize_stack_set(stack_set: StackSet) -> str:
    data = {
        "version": stack_set.version,
        "stacks": [
            {
                "name": stack.name,
                "baseBranch": stack.base_branch,
                "branches": list(stack.branches),
            }
            for stack in stack_set.stacks
        ],
        "settings": {
            "rerere": {
                "enabled": stack_set.settings.rerere.enabled,
                "autoupdate": stack_set.settings.rerere.auto_apply,
            },
            "defaultBaseBranch": stack_set.settings.default_base_branch,
            "pollIntervalMs": stack_set.settings.poll_interval_ms,
        },
    }
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


class MetadataStore:
    """Loads and saves the StackSet of one repository."""

    def __init__(self, repo_root: Path) -> None:
        self._path = repo_root / CONFIG_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> StackSet:
        """Load the StackSet.

        Raises:
            ConfigMissingError: If the file does not exist
            ConfigInvalidError: If the file cannot be parsed or validated
        """
        if not self._path.exists():
            raise ConfigMissingError(
                f"No {CONFIG_FILENAME} found at {self._path.parent}. Run 'stackboi init' first."
            )

        content = self._path.read_text(encoding="utf-8")
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigInvalidError(f"{CONFIG_FILENAME} is not valid JSON: {e}") from e

        return parse_stack_set(data)

    def save(self, stack_set: StackSet) -> None:
        self._path.write_text(serialize_stack_set(stack_set), encoding="utf-8")
        logger.debug("Saved %d stack(s) to %s", len(stack_set.stacks), self._path)
