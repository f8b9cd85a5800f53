"""Chainhook delivery ingestion: normalize, decode, project, store, notify."""

from .notifier import CHANNELS, ChangeNotifier
from .processor import ProcessingResult, WebhookProcessor
from .store import LedgerStore

__all__ = [
    "CHANNELS",
    "ChangeNotifier",
    "LedgerStore",
    "ProcessingResult",
    "WebhookProcessor",
]
