"""Storage for analysis artifacts."""

from booklens.storage.artifacts import (
    ArtifactRepository,
    ArtifactStore,
    InMemoryArtifactStore,
    LocalArtifactStore,
    artifact_key,
)

__all__ = [
    "ArtifactRepository",
    "ArtifactStore",
    "InMemoryArtifactStore",
    "LocalArtifactStore",
    "artifact_key",
]
