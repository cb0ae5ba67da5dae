"""
Notification hub: topics, history polling, subscriber isolation and the
mobile sale event sent to cashiers.
"""

import pytest

from teknoroma.errors import ValidationError
from teknoroma.services import sales_service
from teknoroma.services.notification_service import (
    NotificationHub,
    notifications,
    safe_notify,
    validate_topic,
)


@pytest.fixture
def hub():
    return NotificationHub(buffer_size=3)


class TestTopics:

    @pytest.mark.parametrize(
        "raw,expected",
        [("all", "all"), ("role:warehouse", "role:WAREHOUSE"), ("user:7", "user:7"), (" role:CASHIER ", "role:CASHIER")],
    )
    def test_valid(self, raw, expected):
        assert validate_topic(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "role:JANITOR", "user:abc", "everyone"])
    def test_invalid(self, raw):
        with pytest.raises(ValidationError):
            validate_topic(raw)


class TestHub:

    def test_publish_and_poll(self, hub):
        first = hub.notify_role("WAREHOUSE", "sale.created", {"sale_id": 1})
        hub.notify_role("CASHIER", "sale.created", {"sale_id": 1})
        third = hub.notify_role("WAREHOUSE", "sale.payment_confirmed", {"sale_id": 1})

        assert [n.seq for n in hub.recent("role:WAREHOUSE")] == [first.seq, third.seq]
        assert [n.seq for n in hub.recent("role:WAREHOUSE", after=first.seq)] == [third.seq]
        assert hub.last_seq() == 3

    def test_history_is_bounded(self, hub):
        for i in range(5):
            hub.notify_all("tick", {"i": i})
        assert [n.payload["i"] for n in hub.recent("all")] == [2, 3, 4]

    def test_limit_keeps_newest(self, hub):
        for i in range(3):
            hub.notify_user(4, "ticket.assigned", {"i": i})
        assert [n.payload["i"] for n in hub.recent("user:4", limit=2)] == [1, 2]
        assert hub.recent("user:4", limit=0) == []

    def test_subscribers(self, hub):
        received = []
        unsubscribe = hub.subscribe("role:WAREHOUSE", received.append)

        hub.notify_role("WAREHOUSE", "stock.critical")
        hub.notify_role("CASHIER", "sale.created")
        unsubscribe()
        hub.notify_role("WAREHOUSE", "stock.critical")

        assert [n.event_type for n in received] == ["stock.critical"]

    def test_failing_subscriber_does_not_break_publish(self, hub):
        received = []

        def boom(notification):
            raise RuntimeError("subscriber down")

        hub.subscribe("all", boom)
        hub.subscribe("all", received.append)
        notification = hub.notify_all("maintenance")

        assert received == [notification]
        assert hub.recent("all") == [notification]

    def test_to_dict(self, hub):
        data = hub.notify_all("hello", {"a": 1}).to_dict()
        assert data["topic"] == "all"
        assert data["payload"] == {"a": 1}
        assert data["created_at"].endswith("Z")

    def test_reset(self, hub):
        hub.notify_all("x")
        hub.reset()
        assert hub.last_seq() == 0
        assert hub.recent("all") == []


class TestMobileSale:

    def test_mobile_sale_notifies_cashiers(self, customer, cashier, store, product):
        sale = sales_service.create_sale(
            customer.id, cashier.id, store.id, "CREDIT_CARD", [(product.id, 1)], is_mobile=True,
        )

        events = notifications.recent("role:CASHIER")
        assert [e.event_type for e in events] == ["sale.created", "sale.mobile"]
        payload = events[-1].payload
        assert payload["sale_number"] == sale.sale_number
        assert payload["employee_name"] == "Gul Satar"
        assert payload["customer_name"] == "Ayse Yilmaz"
        # 1000.00 TL + 20% tax
        assert payload["total_cents"] == 120_000
        assert [e.event_type for e in notifications.recent("role:WAREHOUSE")] == ["sale.created"]

    def test_register_sale_sends_no_mobile_event(self, customer, cashier, store, product):
        sales_service.create_sale(customer.id, cashier.id, store.id, "CASH", [(product.id, 1)])
        assert [e.event_type for e in notifications.recent("role:CASHIER")] == ["sale.created"]

    def test_is_mobile_must_be_bool(self, customer, cashier, store, product):
        with pytest.raises(ValidationError):
            sales_service.create_sale(
                customer.id, cashier.id, store.id, "CASH", [(product.id, 1)], is_mobile="yes",
            )


def test_safe_notify_swallows_failures():
    def broken():
        raise RuntimeError("hub unavailable")

    safe_notify(broken, "test")
