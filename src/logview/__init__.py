"""Real-time log view: REST snapshots and pushed records reconciled into one filtered slice."""

__version__ = "0.1.0"
