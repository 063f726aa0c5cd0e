"""Run the image pipeline at most once per message.

Chat platforms may announce a message before its files are attached and then
deliver the files in a follow-up edit. Each message id therefore moves through
a small state machine:

    (unseen) --observed with files--------------------------> DONE
    (unseen) --observed without files--> PENDING --updated--> DONE
    (unseen) --updated, files newly added-------------------> DONE

Pending entries expire after ``pending_ttl`` seconds and DONE ids are kept in a
bounded history, so memory stays flat however many messages go by.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, Optional

from framebot.models import InboundItem

logger = logging.getLogger(__name__)


class MessageState(enum.Enum):
    UNSEEN = 'unseen'
    PENDING = 'pending'
    DONE = 'done'


class AttachmentEventCoordinator:
    def __init__(
        self,
        pipeline: Callable[[InboundItem], object],
        pending_ttl: float = 900.0,
        history_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.pipeline = pipeline
        self.pending_ttl = pending_ttl
        self.history_size = history_size
        self.clock = clock
        self._lock = threading.Lock()
        self._pending: Dict[str, float] = {}
        self._done: "OrderedDict[str, None]" = OrderedDict()

    def state_of(self, message_id: str) -> MessageState:
        with self._lock:
            if message_id in self._done:
                return MessageState.DONE
            if message_id in self._pending:
                return MessageState.PENDING
            return MessageState.UNSEEN

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def _expire_pending(self, now: float) -> None:
        expired = [mid for mid, since in self._pending.items() if now - since > self.pending_ttl]
        for mid in expired:
            del self._pending[mid]
        if expired:
            logger.debug(f"Dropped {len(expired)} pending message(s) that never received files")

    def _mark_done(self, message_id: str) -> None:
        self._pending.pop(message_id, None)
        self._done[message_id] = None
        self._done.move_to_end(message_id)
        while len(self._done) > self.history_size:
            self._done.popitem(last=False)

    def message_observed(self, item: InboundItem) -> bool:
        """Handle the first sighting of a message. Returns True if the pipeline ran."""
        with self._lock:
            now = self.clock()
            self._expire_pending(now)
            mid = item.message_id
            if mid in self._done or mid in self._pending:
                logger.debug(f"Message {mid} already observed; ignoring duplicate")
                return False
            if not item.has_attachments:
                self._pending[mid] = now
                logger.debug(f"Message {mid} has no attachments yet; waiting for an update")
                return False
            self._mark_done(mid)

        self._run(item)
        return True

    def message_updated(self, old: Optional[InboundItem], new: InboundItem) -> bool:
        """Handle an edit. Returns True if the pipeline ran."""
        with self._lock:
            self._expire_pending(self.clock())
            mid = new.message_id
            if mid in self._done:
                return False
            if not new.has_attachments:
                return False
            if mid not in self._pending:
                # Never observed (e.g. posted before start-up): only react if the
                # edit is what brought the files in.
                if old is not None and old.has_attachments:
                    return False
            self._mark_done(mid)

        self._run(new)
        return True

    def _run(self, item: InboundItem) -> None:
        logger.info(f"Processing message {item.message_id} with {len(item.attachments)} attachment(s)")
        try:
            self.pipeline(item)
        except Exception:
            logger.exception(f"Pipeline failed for message {item.message_id}")
