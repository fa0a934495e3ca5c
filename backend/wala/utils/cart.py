"""In-memory shopping carts keyed by user id."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

_LOGGER = logging.getLogger("wala.reservations")


class CartStore:
    """Per-user list of product ids with an idle timeout.

    A cart untouched for `ttl_seconds` is dropped and `on_expire` is called
    with `(user_id, product_ids)` so the caller can release reservations.
    """

    def __init__(self, ttl_seconds: int = 1800, on_expire: Optional[Callable[[int, list[int]], None]] = None):
        self._carts: dict[int, dict] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.on_expire = on_expire

    def items(self, user_id: int) -> list[int]:
        self.expire_idle()
        with self._lock:
            cart = self._carts.get(user_id)
            if not cart:
                return []
            cart["touched"] = time.monotonic()
            return list(cart["items"])

    def count(self, user_id: int) -> int:
        return len(self.items(user_id))

    def contains(self, user_id: int, product_id: int) -> bool:
        return product_id in self.items(user_id)

    def add(self, user_id: int, product_id: int) -> bool:
        """Append `product_id`; False when it was already there."""
        self.expire_idle()
        with self._lock:
            cart = self._carts.setdefault(user_id, {"items": [], "touched": time.monotonic()})
            cart["touched"] = time.monotonic()
            if product_id in cart["items"]:
                return False
            cart["items"].append(product_id)
            return True

    def remove(self, user_id: int, product_id: int) -> bool:
        with self._lock:
            cart = self._carts.get(user_id)
            if not cart or product_id not in cart["items"]:
                return False
            cart["items"].remove(product_id)
            cart["touched"] = time.monotonic()
            return True

    def clear(self, user_id: int) -> list[int]:
        """Empty the user's cart and return what it held."""
        with self._lock:
            cart = self._carts.pop(user_id, None)
        return list(cart["items"]) if cart else []

    def reset(self) -> None:
        """Drop every cart without firing `on_expire`."""
        with self._lock:
            self._carts.clear()

    def expire_idle(self) -> int:
        cutoff = time.monotonic() - self._ttl_seconds
        with self._lock:
            stale = [uid for uid, cart in self._carts.items() if cart["touched"] < cutoff]
            expired = [(uid, self._carts.pop(uid)["items"]) for uid in stale]
        for user_id, product_ids in expired:
            _LOGGER.info("cart of user %s expired with %d item(s)", user_id, len(product_ids))
            if self.on_expire and product_ids:
                self.on_expire(user_id, list(product_ids))
        return len(expired)
