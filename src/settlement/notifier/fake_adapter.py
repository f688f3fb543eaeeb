"""Fake notifier: records notifications in memory for test assertions."""

from settlement.notifier.port import Notifier


class NotificationDeliveryError(Exception):
    pass


class FakeNotifier(Notifier):
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def _record(self, kind: str, order_snapshot: dict) -> None:
        if not self.should_succeed:
            raise NotificationDeliveryError(self.failure_reason)
        self.sent.append({"kind": kind, **order_snapshot})

    def order_created(self, order_snapshot: dict) -> None:
        self._record("order_created", order_snapshot)

    def payment_received(self, order_snapshot: dict) -> None:
        self._record("payment_received", order_snapshot)

    def reset(self) -> None:
        self.sent.clear()
        self.should_succeed = True
