"""Realtime delivery: subscriber registry, broadcaster and scheduler."""

from .broadcaster import Broadcaster, Sink, encode_event
from .locks import ReadWriteLock
from .scheduler import SyncScheduler

__all__ = ["Broadcaster", "ReadWriteLock", "Sink", "SyncScheduler", "encode_event"]
