"""Dialogue event log and its projection into materialized tables."""

from taletree.events.projector import StateProjector
from taletree.events.store import EventStore

__all__ = ["EventStore", "StateProjector"]
