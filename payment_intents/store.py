"""
Intent store.

Single source of truth for reconciliation. Reads-then-writes for one intent id
are serialized with a per-key lock, and every state write is a conditional
UPDATE so a writer in another process cannot land a stale write either.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import or_, update

from payment_intents.models import IntentState, PaymentIntent

logger = logging.getLogger(__name__)


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class IntentStore:

    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._locks: dict[str, _KeyLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def lock(self, intent_id: str):
        """Hold the lock for one intent id for the duration of the block.

        An id's entry lives only while some thread holds or waits on it.
        """
        with self._locks_guard:
            key_lock = self._locks.get(intent_id)
            if key_lock is None:
                key_lock = self._locks[intent_id] = _KeyLock()
            key_lock.users += 1
        try:
            with key_lock.lock:
                yield
        finally:
            with self._locks_guard:
                key_lock.users -= 1
                if key_lock.users == 0:
                    del self._locks[intent_id]

    def add(self, intent: PaymentIntent) -> PaymentIntent:
        db = self._session_factory()
        try:
            db.add(intent)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        return intent

    def get(self, intent_id: str) -> Optional[PaymentIntent]:
        db = self._session_factory()
        try:
            return db.get(PaymentIntent, intent_id)
        finally:
            db.close()

    def compare_and_set(
        self,
        intent_id: str,
        expected_state: IntentState,
        new_state: IntentState,
        event_id: Optional[str] = None,
    ) -> bool:
        """Move an intent to `new_state` only if it is still in `expected_state`.

        When `event_id` is given it becomes the intent's `last_event_id`, and
        the write is refused if that event was already the last one applied.
        Returns True when exactly one row was updated.
        """
        conditions = [
            PaymentIntent.id == intent_id,
            PaymentIntent.state == expected_state,
        ]
        values = {"state": new_state}
        if event_id is not None:
            conditions.append(
                or_(
                    PaymentIntent.last_event_id.is_(None),
                    PaymentIntent.last_event_id != event_id,
                )
            )
            values["last_event_id"] = event_id

        db = self._session_factory()
        try:
            result = db.execute(update(PaymentIntent).where(*conditions).values(**values))
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        if result.rowcount != 1:
            logger.debug(
                "Compare-and-set missed for %s (expected %s)", intent_id, expected_state.value
            )
            return False
        return True
