"""Durable per-intent metadata kept beside the NLU intent store."""

from intentkeeper.memory.metadata_store import IntentMetadata, IntentMetadataStore

__all__ = ["IntentMetadata", "IntentMetadataStore"]
