"""Wiring of stores, clients and services into a :class:`ServiceContainer`."""

from __future__ import annotations

from .actions import BulkActionService
from .core import AppSettings, ServiceContainer
from .ingestion import SyncEngine
from .intelligence import CategoryService, LLMInferenceService, build_llm_client
from .realtime import Broadcaster, SyncScheduler
from .storage import build_store
from .transport import GmailMailboxClient
from .unsubscribe import UnsubscribeService


def build_container(settings: AppSettings) -> ServiceContainer:
    """Register default factories for every service.

    Callers may replace any entry with ``register_instance`` before it is
    resolved, which is how tests swap in stub mailboxes and inference.
    """
    container = ServiceContainer()
    container.register_instance("settings", settings)
    container.register("store", lambda c: build_store(settings.storage))
    container.register("owners", lambda c: c.resolve("store").owners)
    container.register("categories", lambda c: c.resolve("store").categories)
    container.register("messages", lambda c: c.resolve("store").messages)
    container.register(
        "mailbox", lambda c: GmailMailboxClient(settings.gmail, c.resolve("owners"))
    )
    container.register("llm", lambda c: build_llm_client(settings.llm))
    container.register(
        "inference", lambda c: LLMInferenceService(c.resolve("llm"), settings.llm)
    )
    container.register(
        "category_service", lambda c: CategoryService(c.resolve("categories"))
    )
    container.register(
        "sync_engine",
        lambda c: SyncEngine(
            owners=c.resolve("owners"),
            categories=c.resolve("categories"),
            messages=c.resolve("messages"),
            mailbox=c.resolve("mailbox"),
            inference=c.resolve("inference"),
            settings=settings.sync,
        ),
    )
    container.register(
        "unsubscribe",
        lambda c: UnsubscribeService(
            messages=c.resolve("messages"),
            owners=c.resolve("owners"),
            inference=c.resolve("inference"),
            settings=settings.unsubscribe,
        ),
    )
    container.register(
        "bulk_actions",
        lambda c: BulkActionService(
            owners=c.resolve("owners"),
            messages=c.resolve("messages"),
            mailbox=c.resolve("mailbox"),
            unsubscriber=c.resolve("unsubscribe"),
        ),
    )
    container.register("broadcaster", lambda c: Broadcaster(settings.realtime))
    container.register(
        "scheduler",
        lambda c: SyncScheduler(
            engine=c.resolve("sync_engine"),
            owners=c.resolve("owners"),
            messages=c.resolve("messages"),
            broadcaster=c.resolve("broadcaster"),
            settings=settings.sync,
        ),
    )
    return container


__all__ = ["build_container"]
