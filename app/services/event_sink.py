"""
Case Lifecycle Platform
Event sink for best-effort side effects.

Activity logging and user notifications are emitted as events after the
primary operation has committed.  ``EventSink.emit`` never raises: a failing
handler is logged and its partial writes are rolled back, but the caller's
committed work is untouched.

Two sinks:
    - BackgroundEventSink: handlers run on a thread pool inside an app context
    - InlineEventSink:     handlers run synchronously (testing, CLI)

Selected by the EVENT_SINK_MODE config key and registered as
``app.extensions["event_sink"]`` by ``init_event_sink``.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from flask import Flask, current_app

from app.models import db
from app.models.activity import write_activity
from app.services.notification import NotificationService

logger = logging.getLogger(__name__)


# ── Events ───────────────────────────────────────────────────────────────────


@dataclass
class ActivityEvent:
    user_id: str
    action: str
    entity_type: str
    entity_id: int | str
    details: dict = field(default_factory=dict)


@dataclass
class NotificationEvent:
    """Notify either an explicit user list or every active user of a company."""

    title: str
    message: str = ""
    type: str = "system"
    company_id: int | None = None
    user_ids: list = field(default_factory=list)
    entity_type: str = ""
    entity_id: int | None = None
    exclude_user_id: str | None = None


# ── Handlers ─────────────────────────────────────────────────────────────────


def _handle_activity(event: ActivityEvent) -> None:
    write_activity(
        user_id=event.user_id,
        action=event.action,
        entity_type=event.entity_type,
        entity_id=event.entity_id,
        details=event.details,
    )
    db.session.commit()


def _handle_notification(event: NotificationEvent) -> None:
    if event.user_ids:
        NotificationService.broadcast(
            user_ids=event.user_ids, title=event.title, message=event.message,
            type=event.type, entity_type=event.entity_type, entity_id=event.entity_id,
        )
    elif event.company_id is not None:
        NotificationService.notify_company_users(
            event.company_id, title=event.title, message=event.message,
            type=event.type, entity_type=event.entity_type, entity_id=event.entity_id,
            exclude_user_id=event.exclude_user_id,
        )


_HANDLERS = {
    ActivityEvent: _handle_activity,
    NotificationEvent: _handle_notification,
}


def dispatch(event) -> None:
    """Run the handler registered for the event's type."""
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"No handler for event type {type(event).__name__}")
    handler(event)


# ── Sinks ────────────────────────────────────────────────────────────────────


class EventSink:
    """Base sink.  Subclasses implement ``_submit``."""

    def emit(self, event) -> None:
        try:
            self._submit(event)
        except Exception:
            logger.exception("Event sink could not accept %s", type(event).__name__)

    def _submit(self, event) -> None:
        raise NotImplementedError

    @staticmethod
    def _run(event) -> None:
        try:
            dispatch(event)
        except Exception:
            logger.exception("Event handler failed for %s", event)
            db.session.rollback()

    def shutdown(self) -> None:
        pass


class InlineEventSink(EventSink):
    """Runs handlers immediately in the caller's app context."""

    def _submit(self, event) -> None:
        self._run(event)


class BackgroundEventSink(EventSink):
    """Runs handlers on a worker pool; each job opens its own app context."""

    def __init__(self, app: Flask, max_workers: int = 2):
        self._app = app
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="event-sink")

    def _submit(self, event) -> None:
        self._executor.submit(self._run_in_context, event)

    def _run_in_context(self, event) -> None:
        with self._app.app_context():
            self._run(event)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


def init_event_sink(app: Flask) -> EventSink:
    """Create the configured sink and register it on the app."""
    mode = app.config.get("EVENT_SINK_MODE", "background")
    if mode == "inline":
        sink = InlineEventSink()
    elif mode == "background":
        sink = BackgroundEventSink(app, max_workers=app.config.get("EVENT_SINK_WORKERS", 2))
    else:
        raise ValueError(f"Unknown EVENT_SINK_MODE: {mode!r}")
    app.extensions["event_sink"] = sink
    logger.debug("Event sink initialised: %s", type(sink).__name__)
    return sink


def get_event_sink() -> EventSink:
    return current_app.extensions["event_sink"]


def emit(event) -> None:
    """Emit *event* to the application's sink."""
    get_event_sink().emit(event)
