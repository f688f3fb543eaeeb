"""Notifier port: fire-and-forget customer/admin alerts about orders.

Checkout never waits on, or fails because of, a notifier. Callers wrap every
call and only log failures.
"""

from abc import ABC, abstractmethod


class Notifier(ABC):
    @abstractmethod
    def order_created(self, order_snapshot: dict) -> None:
        """Announce a newly placed order (confirmation email, admin alert)."""
        ...

    @abstractmethod
    def payment_received(self, order_snapshot: dict) -> None:
        """Announce that a gateway payment for an order was confirmed."""
        ...
