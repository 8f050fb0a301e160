"""
Invocation manifest.

An ordered, append-only list of manifest entries. Persisted as a JSON
array of tagged envelopes:

    [
      {"type": "run", "body": {"pid": 123, "basename": "000.echo.123", ...}},
      {"type": "can_run", "body": {"executable": "git", "result": true}}
    ]
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any

from ..errors import ManifestFormatError
from ..interface.process import ProcessStartMode
from .entries import CanRunManifestEntry, ManifestEntry, RunManifestEntry

# Decoders for each envelope ``type``
ENTRY_DECODERS: dict[str, Callable[[Mapping[str, Any]], ManifestEntry]] = {
    RunManifestEntry.type: RunManifestEntry.from_dict,
    CanRunManifestEntry.type: CanRunManifestEntry.from_dict,
}


class Manifest:
    """Ordered list of recorded invocations.

    Lookups only ever return pending entries (``invoked`` is False), and
    the first pending match wins.
    """

    def __init__(self, entries: Sequence[ManifestEntry] = ()):
        self._entries: list[ManifestEntry] = list(entries)

    def add(self, entry: ManifestEntry) -> None:
        self._entries.append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ManifestEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> ManifestEntry:
        return self._entries[index]

    @property
    def run_entries(self) -> list[RunManifestEntry]:
        return [e for e in self._entries if isinstance(e, RunManifestEntry)]

    def find_pending_run_entry(
        self,
        *,
        command: Sequence[str] | None = None,
        mode: ProcessStartMode | None = None,
        stdout_encoding: str | None = None,
        stderr_encoding: str | None = None,
    ) -> RunManifestEntry | None:
        """Return the first pending run entry satisfying every given criterion.

        Criteria left as None match anything. The working directory and
        environment never take part in matching.
        """
        wanted = list(command) if command is not None else None
        for entry in self._entries:
            if not isinstance(entry, RunManifestEntry) or entry.invoked:
                continue
            if wanted is not None and entry.command != wanted:
                continue
            if mode is not None and entry.mode != mode:
                continue
            if stdout_encoding is not None and entry.stdout_encoding != stdout_encoding:
                continue
            if stderr_encoding is not None and entry.stderr_encoding != stderr_encoding:
                continue
            return entry
        return None

    def find_pending_can_run_entry(self, *, executable: str | None = None) -> CanRunManifestEntry | None:
        for entry in self._entries:
            if not isinstance(entry, CanRunManifestEntry) or entry.invoked:
                continue
            if executable is not None and entry.executable != executable:
                continue
            return entry
        return None

    def get_run_entry(self, pid: int) -> RunManifestEntry | None:
        """Return the first run entry recorded with ``pid``."""
        for entry in self._entries:
            if isinstance(entry, RunManifestEntry) and entry.pid == pid:
                return entry
        return None

    def to_list(self) -> list[dict[str, Any]]:
        return [{"type": entry.type, "body": entry.to_dict()} for entry in self._entries]

    def to_json(self) -> str:
        return json.dumps(self.to_list(), indent=2, ensure_ascii=False)

    @classmethod
    def from_list(cls, data: Any) -> Manifest:
        if not isinstance(data, list):
            raise ManifestFormatError(f"Manifest must be a JSON array, got {type(data).__name__}")
        manifest = cls()
        for envelope in data:
            manifest.add(_decode_envelope(envelope))
        return manifest

    @classmethod
    def from_json(cls, text: str) -> Manifest:
        """Parse a manifest document.

        Raises:
            ManifestFormatError: If the document is not valid JSON, not an
                array of envelopes, or holds a malformed entry.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ManifestFormatError(f"Manifest is not valid JSON: {e}", cause=e) from e
        return cls.from_list(data)


def _decode_envelope(envelope: Any) -> ManifestEntry:
    if not isinstance(envelope, Mapping):
        raise ManifestFormatError(f"Manifest entry must be a JSON object, got {type(envelope).__name__}")
    for key in ("type", "body"):
        if key not in envelope:
            raise ManifestFormatError(f"Required field missing: {key}")
    decoder = ENTRY_DECODERS.get(envelope["type"]) if isinstance(envelope["type"], str) else None
    if decoder is None:
        raise ManifestFormatError(f"Unknown manifest entry type: {envelope['type']}")
    return decoder(envelope["body"])


__all__ = ["Manifest", "ENTRY_DECODERS"]
