"""Utility functions for intentkeeper."""

from intentkeeper.utils.atomic_io import AtomicFileWriter, get_atomic_writer

__all__ = ["AtomicFileWriter", "get_atomic_writer"]
