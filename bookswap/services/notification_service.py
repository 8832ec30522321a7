"""
bookswap.services.notification_service — Outbound Notification Queue
=====================================================================

Services never send email themselves.  They call
:meth:`NotificationDispatcher.notify`, which drops a
:class:`~bookswap.engine.events.Notification` on a bounded in-process
queue and returns immediately.  A single worker thread drains the queue
and makes **one** delivery attempt per message.  Failures are logged and
the message is discarded; there is no retry and no dead-letter store.

A full queue drops the new message rather than blocking the caller, so a
slow or dead email provider can never hold up a swap transition.

Lifecycle (wired in ``bookswap.api.main``)::

    dispatcher = NotificationDispatcher(sender, app_name=..., app_url=...)
    dispatcher.start()      # on startup
    ...
    dispatcher.stop()       # on shutdown, flushes what's queued
"""

from __future__ import annotations

import logging
import queue
import threading

from bookswap.engine.events import Notification, NotificationKind, Recipient
from bookswap.services.email_service import EmailSender, build_message

logger = logging.getLogger(__name__)

_STOP = object()


class NotificationDispatcher:
    """Bounded queue + worker thread in front of an :class:`EmailSender`."""

    def __init__(
        self,
        sender: EmailSender,
        *,
        app_name: str,
        app_url: str,
        max_queue: int = 1000,
    ) -> None:
        self._sender = sender
        self._app_name = app_name
        self._app_url = app_url
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue)
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.sent = 0
        self.failed = 0
        self.dropped = 0

    # ------------------------------------------------------------------
    # Producer side: called from services
    # ------------------------------------------------------------------
    def notify(
        self,
        kind: NotificationKind,
        recipient: Recipient,
        context: dict | None = None,
    ) -> None:
        """Queue a notification.  Never blocks, never raises."""
        notification = Notification(kind=kind, recipient=recipient, context=context or {})
        try:
            self._queue.put_nowait(notification)
        except queue.Full:
            with self._lock:
                self.dropped += 1
            logger.error(
                "Notification queue full; dropping %s for %s",
                kind, recipient.email,
            )

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------
    def deliver(self, notification: Notification) -> bool:
        """Make a single delivery attempt.  Returns True on success."""
        try:
            subject, body = build_message(
                notification, app_name=self._app_name, app_url=self._app_url,
            )
            self._sender.send(
                notification.recipient.email,
                notification.recipient.name,
                subject,
                body,
            )
        except Exception:
            with self._lock:
                self.failed += 1
            logger.exception(
                "Failed to deliver %s notification to %s",
                notification.kind, notification.recipient.email,
            )
            return False

        with self._lock:
            self.sent += 1
        return True

    def drain_once(self) -> int:
        """Deliver everything currently queued on the calling thread.

        Returns the number of messages taken off the queue.  Used by tests
        and by :meth:`stop` to flush leftovers.
        """
        taken = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return taken
            if item is _STOP:
                continue
            self.deliver(item)
            taken += 1

    def start(self) -> None:
        """Start the background worker thread."""
        if self._thread is not None:
            return

        def _worker() -> None:
            while True:
                item = self._queue.get()
                if item is _STOP:
                    return
                self.deliver(item)

        self._thread = threading.Thread(
            target=_worker, name="notification-worker", daemon=True,
        )
        self._thread.start()
        logger.info("Notification worker started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker, flush what's left, and close the sender."""
        if self._thread is not None:
            try:
                self._queue.put(_STOP, timeout=timeout)
            except queue.Full:
                logger.warning("Notification queue full at shutdown; worker not signalled")
            self._thread.join(timeout)
            self._thread = None
        leftover = self.drain_once()
        if leftover:
            logger.info("Flushed %d queued notifications at shutdown", leftover)
        self._sender.close()
        logger.info(
            "Notification worker stopped (sent=%d failed=%d dropped=%d)",
            self.sent, self.failed, self.dropped,
        )
