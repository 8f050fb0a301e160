"""
Manifest entries.

This module provides:
- ManifestEntry: Base class for one persisted invocation record
- RunManifestEntry: A recorded start/run/run_sync invocation
- CanRunManifestEntry: A recorded can_run check

Entries serialize to the ``body`` of a ``{"type", "body"}`` envelope
(see ``Manifest``). ``invoked``, ``daemon`` and ``not_responding`` are
forward-only flags: once True they can never be reset to False.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from ..errors import ManifestFormatError
from ..interface.process import ProcessStartMode, normalize_encoding

RUN_BODY_SCHEMA = {
    "type": "object",
    "properties": {
        "pid": {"type": "integer"},
        "basename": {"type": "string"},
        "command": {"type": "array", "items": {"type": "string"}},
        "workingDirectory": {"type": ["string", "null"]},
        "environment": {
            "type": ["object", "null"],
            "additionalProperties": {"type": "string"},
        },
        "includeParentEnvironment": {"type": ["boolean", "null"]},
        "runInShell": {"type": ["boolean", "null"]},
        "mode": {"type": ["string", "null"]},
        "stdoutEncoding": {"type": ["string", "null"]},
        "stderrEncoding": {"type": ["string", "null"]},
        "daemon": {"type": ["boolean", "null"]},
        "notResponding": {"type": ["boolean", "null"]},
        "exitCode": {"type": ["integer", "null"]},
    },
}

CAN_RUN_BODY_SCHEMA = {
    "type": "object",
    "properties": {
        "executable": {"type": "string"},
        "result": {"type": "boolean"},
    },
}

_RUN_VALIDATOR = Draft202012Validator(RUN_BODY_SCHEMA)
_CAN_RUN_VALIDATOR = Draft202012Validator(CAN_RUN_BODY_SCHEMA)


def check_required_field(data: Mapping[str, Any], key: str) -> None:
    if key not in data:
        raise ManifestFormatError(f"Required field missing: {key}")


def _check_body(data: Any, required: tuple[str, ...], validator: Draft202012Validator) -> None:
    if not isinstance(data, Mapping):
        raise ManifestFormatError(f"Entry body must be a JSON object, got {type(data).__name__}")
    for key in required:
        check_required_field(data, key)
    error = best_match(validator.iter_errors(dict(data)))
    if error is not None:
        location = ".".join(str(p) for p in error.absolute_path) or "body"
        raise ManifestFormatError(f"Invalid value for {location}: {error.message}")


class _JsonBuilder:
    """Builds an entry body, skipping None values."""

    def __init__(self) -> None:
        self.entry: dict[str, Any] = {}

    def add(self, name: str, value: Any, json_value: Any = None) -> _JsonBuilder:
        if value is not None:
            self.entry[name] = value if json_value is None else json_value
        return self


class ManifestEntry(ABC):
    """A single persisted invocation record."""

    type: ClassVar[str]

    _invoked: bool

    @property
    def invoked(self) -> bool:
        """Whether this entry has been consumed by a replay lookup."""
        return self._invoked

    def mark_invoked(self) -> None:
        self._invoked = True

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-encodable envelope body."""
        ...

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ManifestEntry:
        """Create an entry from an envelope body.

        Raises:
            ManifestFormatError: If a required field is missing or a
                field has the wrong type or an unknown value.
        """
        ...


_FORWARD_ONLY_FLAGS = frozenset({"daemon", "not_responding"})


@dataclass
class RunManifestEntry(ManifestEntry):
    """A recorded process invocation.

    ``stdout`` and ``stderr`` are stored in the recording directory as
    ``<basename>.stdout`` and ``<basename>.stderr``.
    """

    type: ClassVar[str] = "run"

    pid: int
    basename: str
    command: list[str]
    working_directory: str | None = None
    environment: dict[str, str] | None = None
    include_parent_environment: bool | None = None
    run_in_shell: bool | None = None
    mode: ProcessStartMode | None = None
    stdout_encoding: str | None = None
    stderr_encoding: str | None = None
    exit_code: int | None = None
    daemon: bool = False
    not_responding: bool = False
    _invoked: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.command = list(self.command)
        if self.environment is not None:
            self.environment = dict(self.environment)
        if self.mode is not None:
            self.mode = ProcessStartMode(self.mode)
        self.stdout_encoding = normalize_encoding(self.stdout_encoding)
        self.stderr_encoding = normalize_encoding(self.stderr_encoding)
        self.daemon = bool(self.daemon)
        self.not_responding = bool(self.not_responding)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _FORWARD_ONLY_FLAGS and getattr(self, name, False) and not value:
            raise ValueError(f"{name} cannot be reset once set")
        super().__setattr__(name, value)

    @property
    def executable(self) -> str:
        return self.command[0]

    @property
    def arguments(self) -> list[str]:
        return self.command[1:]

    def mark_daemon(self) -> None:
        """Mark the process as one that did not exit on its own."""
        self.daemon = True

    def mark_not_responding(self) -> None:
        """Mark the process as one that did not respond to SIGTERM."""
        self.not_responding = True

    def to_dict(self) -> dict[str, Any]:
        return (
            _JsonBuilder()
            .add("pid", self.pid)
            .add("basename", self.basename)
            .add("command", list(self.command))
            .add("workingDirectory", self.working_directory)
            .add("environment", self.environment)
            .add("includeParentEnvironment", self.include_parent_environment)
            .add("runInShell", self.run_in_shell)
            .add("mode", self.mode, self.mode.value if self.mode else None)
            .add("stdoutEncoding", self.stdout_encoding)
            .add("stderrEncoding", self.stderr_encoding)
            .add("daemon", self.daemon)
            .add("notResponding", self.not_responding)
            .add("exitCode", self.exit_code)
            .entry
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RunManifestEntry:
        _check_body(data, ("pid", "basename", "command"), _RUN_VALIDATOR)
        return cls(
            pid=data["pid"],
            basename=data["basename"],
            command=data["command"],
            working_directory=data.get("workingDirectory"),
            environment=data.get("environment"),
            include_parent_environment=data.get("includeParentEnvironment"),
            run_in_shell=data.get("runInShell"),
            mode=_parse_mode(data.get("mode")),
            stdout_encoding=_parse_encoding(data, "stdoutEncoding"),
            stderr_encoding=_parse_encoding(data, "stderrEncoding"),
            exit_code=data.get("exitCode"),
            daemon=bool(data.get("daemon")),
            not_responding=bool(data.get("notResponding")),
        )


@dataclass
class CanRunManifestEntry(ManifestEntry):
    """A recorded ``can_run`` check."""

    type: ClassVar[str] = "can_run"

    executable: str
    result: bool
    _invoked: bool = field(default=False, init=False, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return _JsonBuilder().add("executable", self.executable).add("result", self.result).entry

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CanRunManifestEntry:
        _check_body(data, ("executable", "result"), _CAN_RUN_VALIDATOR)
        return cls(executable=data["executable"], result=data["result"])


def _parse_mode(value: str | None) -> ProcessStartMode | None:
    if value is None:
        return None
    try:
        return ProcessStartMode(value)
    except ValueError as e:
        raise ManifestFormatError(f"Invalid value for mode: {value}", cause=e) from e


def _parse_encoding(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    try:
        return normalize_encoding(value)
    except LookupError as e:
        raise ManifestFormatError(f"Invalid value for {key}: {value}", cause=e) from e


__all__ = [
    "ManifestEntry",
    "RunManifestEntry",
    "CanRunManifestEntry",
    "check_required_field",
    "RUN_BODY_SCHEMA",
    "CAN_RUN_BODY_SCHEMA",
]
