# kesti/services/cart_sessions.py

import threading
from contextlib import contextmanager

from kesti.core.tenant import TenantContext
from kesti.services.cart_store import CartStore
from kesti.services.checkout import CheckoutInProgressError


class CartSession:
    def __init__(self):
        self.store = CartStore()
        self.processing = False
        self._lock = threading.Lock()

    @contextmanager
    def checkout_guard(self):
        """Hold the processing flag while a checkout is in flight."""
        with self._lock:
            if self.processing:
                raise CheckoutInProgressError("Checkout already in progress")
            self.processing = True
        try:
            yield self.store
        finally:
            with self._lock:
                self.processing = False

    @contextmanager
    def editing(self):
        """Hold the lock for one cart mutation.

        Refused while a checkout is in flight, so the cart a checkout
        reads is the cart it clears.
        """
        with self._lock:
            if self.processing:
                raise CheckoutInProgressError("Cart is locked while checkout is in progress")
            yield self.store


class CartSessionRegistry:
    """One cart per (owner, device). Lives as long as the process."""

    def __init__(self):
        self._sessions: dict[tuple[str, str], CartSession] = {}
        self._lock = threading.Lock()

    def get(self, tenant: TenantContext) -> CartSession:
        key = (tenant.owner_id, tenant.device_id)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = CartSession()
                self._sessions[key] = session
            return session

    def drop(self, tenant: TenantContext) -> None:
        with self._lock:
            self._sessions.pop((tenant.owner_id, tenant.device_id), None)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


cart_sessions = CartSessionRegistry()
