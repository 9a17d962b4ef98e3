#!/usr/bin/env python3
"""Tests for the status enums."""

from agrocoop import AlertStatus, OrderStatus


class TestAlertStatus:
    """Tests for AlertStatus ordering."""

    def test_urgency_ordering(self):
        """Lower value = more urgent."""
        assert AlertStatus.OVERDUE.value < AlertStatus.WARNING.value

    def test_sorting_puts_overdue_first(self):
        statuses = [AlertStatus.WARNING, AlertStatus.OVERDUE, AlertStatus.WARNING]
        ordered = sorted(statuses, key=lambda s: s.value)
        assert ordered[0] == AlertStatus.OVERDUE


class TestOrderStatus:
    def test_from_stored_value(self):
        assert OrderStatus("open") == OrderStatus.OPEN
        assert OrderStatus("closed") == OrderStatus.CLOSED
