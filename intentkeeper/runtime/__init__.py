"""Concurrency primitives."""

from intentkeeper.runtime.session_lock import SessionLock, SessionLockTimeout

__all__ = ["SessionLock", "SessionLockTimeout"]
