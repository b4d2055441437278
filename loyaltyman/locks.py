"""
Per-member serialization for ledger mutations.

member_scope() holds an in-process lock for one member, opens a database
transaction, and turns store failures into LoyaltyError. Services re-read
the member row with select_for_update() inside the scope, so processes
sharing the database are serialized as well.
"""

import logging
import threading
import weakref
from contextlib import contextmanager

from django.db import DatabaseError, IntegrityError, transaction

from loyaltyman.conf import loyaltyman_settings
from loyaltyman.exceptions import ErrorCode, LoyaltyError

logger = logging.getLogger(__name__)


class _LockArena:
    """Hands out one lock per member code; unused locks are garbage collected."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()

    def get(self, key: str) -> "_MemberLock":
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = _MemberLock()
                self._locks[key] = lock
            return lock


class _MemberLock:
    """RLock wrapper (RLock itself does not support weak references)."""

    def __init__(self) -> None:
        self._lock = threading.RLock()

    def acquire(self, timeout: float) -> bool:
        return self._lock.acquire(timeout=timeout)

    def release(self) -> None:
        self._lock.release()


_arena = _LockArena()


@contextmanager
def member_scope(member_code: str):
    """
    Serialize all mutations of one member.

    Re-entrant within a thread, so a redemption may post its ledger entry
    through the same scope.

    Raises:
        LoyaltyError(INFRASTRUCTURE_ERROR): lock timeout or store failure
    """
    lock = _arena.get(member_code)
    timeout = loyaltyman_settings.LOCK_TIMEOUT_SECONDS
    if not lock.acquire(timeout=timeout):
        logger.warning("Timed out waiting for member lock %s", member_code)
        raise LoyaltyError(
            ErrorCode.INFRASTRUCTURE_ERROR,
            message="Timed out waiting for member lock",
            member_code=member_code,
        )
    try:
        with transaction.atomic():
            yield
    except IntegrityError:
        raise
    except DatabaseError as exc:
        logger.exception("Ledger store failure for member %s", member_code)
        raise LoyaltyError(
            ErrorCode.INFRASTRUCTURE_ERROR,
            member_code=member_code,
        ) from exc
    finally:
        lock.release()
