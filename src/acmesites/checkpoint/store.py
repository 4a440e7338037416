"""Durable workflow checkpoints.

One JSON document per workflow, written atomically (temporary file in
the same directory, then :func:`os.replace`) so a crash leaves either
the previous or the new checkpoint, never a torn one.
"""

from __future__ import annotations

import abc
import json
import logging
import os
import tempfile
import threading
from pathlib import Path

from acmesites.core.state import TERMINAL_STEPS
from acmesites.models.workflow import WorkflowState

log = logging.getLogger(__name__)


class CheckpointError(Exception):
    """A checkpoint could not be written or read."""


class CheckpointStore(abc.ABC):
    """Persistence of :class:`WorkflowState` between process runs."""

    @abc.abstractmethod
    def save(self, state: WorkflowState) -> None:
        """Persist *state*, replacing any earlier checkpoint of the workflow."""

    @abc.abstractmethod
    def load(self, workflow_id: str) -> WorkflowState | None:
        """Return the last checkpoint of *workflow_id*, or ``None``."""

    @abc.abstractmethod
    def discard(self, workflow_id: str) -> None:
        """Forget *workflow_id*; unknown ids are ignored."""

    @abc.abstractmethod
    def list_pending(self) -> list[WorkflowState]:
        """Every checkpoint not at a terminal step, oldest first."""


class FileCheckpointStore(CheckpointStore):
    """Checkpoints as ``<workflow_id>.json`` files in *directory*."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._dir

    def _path(self, workflow_id: str) -> Path:
        return self._dir / f"{workflow_id}.json"

    def save(self, state: WorkflowState) -> None:
        data = json.dumps(state.to_dict(), indent=2, sort_keys=True)
        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self._path(state.workflow_id))
            except OSError as exc:
                Path(tmp).unlink(missing_ok=True)
                msg = f"Cannot write checkpoint {state.workflow_id}: {exc}"
                raise CheckpointError(msg) from exc
        log.debug("Checkpointed %s at %s", state.workflow_id, state.step)

    def _read(self, path: Path) -> WorkflowState:
        try:
            return WorkflowState.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError, TypeError) as exc:
            msg = f"Cannot read checkpoint {path}: {exc}"
            raise CheckpointError(msg) from exc

    def load(self, workflow_id: str) -> WorkflowState | None:
        path = self._path(workflow_id)
        if not path.is_file():
            return None
        return self._read(path)

    def discard(self, workflow_id: str) -> None:
        with self._lock:
            self._path(workflow_id).unlink(missing_ok=True)
        log.debug("Discarded checkpoint %s", workflow_id)

    def list_pending(self) -> list[WorkflowState]:
        if not self._dir.is_dir():
            return []
        states = []
        for path in sorted(self._dir.glob("*.json")):
            if path.name.startswith(".tmp-"):
                continue
            try:
                state = self._read(path)
            except CheckpointError:
                log.exception("Skipping unreadable checkpoint %s", path)
                continue
            if state.step not in TERMINAL_STEPS:
                states.append(state)
        return sorted(states, key=lambda s: s.created_at)
