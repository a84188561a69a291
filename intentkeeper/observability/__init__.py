"""Decision audit trail."""

from intentkeeper.observability.audit import DecisionLog, DecisionLogEntry

__all__ = ["DecisionLog", "DecisionLogEntry"]
