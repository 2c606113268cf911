"""Versioning collaborators."""

from nldevices.adapters.vcs.git import CommitOutcome, GitVersioning, NullVersioning, Versioning

__all__ = ["CommitOutcome", "GitVersioning", "NullVersioning", "Versioning"]
