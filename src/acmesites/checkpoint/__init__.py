"""Workflow checkpoint persistence."""

from acmesites.checkpoint.store import CheckpointError, CheckpointStore, FileCheckpointStore

__all__ = ["CheckpointError", "CheckpointStore", "FileCheckpointStore"]
