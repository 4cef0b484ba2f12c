# SPDX-License-Identifier: Apache-2.0

"""
Session manager tracking the current authenticated user.

The current user lives in process memory and its id is mirrored into the
persistent store so the session survives a restart.
"""

import logging
from typing import Callable, Optional

from opentelemetry import trace

from models.entities import User
from services.store import PersistentStore, SESSION_TABLE

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class SessionManager:
    """Single current-user pointer for the running process."""
    
    def __init__(self, store: PersistentStore):
        self.store = store
        self._current: Optional[User] = None
    
    @property
    def current_id(self) -> Optional[str]:
        return self._current.id if self._current else None
    
    def current(self) -> Optional[User]:
        """Return the current user, if any."""
        return self._current
    
    def restore(self, resolve: Callable[[str], Optional[User]]) -> Optional[User]:
        """
        Restore the session mirrored in the store.
        
        Args:
            resolve: Looks up a user by id, returning None when unknown
            
        Returns:
            The restored user, or None if there was no valid session
        """
        with tracer.start_as_current_span("session.restore") as span:
            user_id = self.store.load(SESSION_TABLE, None)
            if user_id is None:
                span.set_attribute("session.result", "empty")
                self._current = None
                return None
            
            user = resolve(user_id) if isinstance(user_id, str) else None
            if user is None:
                span.set_attribute("session.result", "stale")
                logger.info("Discarding stored session for unknown user", extra={"user_id": str(user_id)})
                self._current = None
                self.store.delete(SESSION_TABLE)
                return None
            
            span.set_attributes({"session.result": "restored", "session.user_id": user.id})
            self._current = user
            return user
    
    def set(self, user: User) -> bool:
        """
        Make a user current and persist the mirrored id.
        
        Returns:
            True if the mirrored id was durably saved
        """
        self._current = user
        logger.info("Session established", extra={"user_id": user.id})
        return self.store.save(SESSION_TABLE, user.id)
    
    def refresh(self, user: User) -> None:
        """Replace the cached current user if it is the same account."""
        if self._current is not None and self._current.id == user.id:
            self._current = user
    
    def clear(self) -> bool:
        """Drop the current user and remove the mirrored id."""
        if self._current is not None:
            logger.info("Session cleared", extra={"user_id": self._current.id})
        self._current = None
        return self.store.delete(SESSION_TABLE)
