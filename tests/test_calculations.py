#!/usr/bin/env python3
"""Tests for the alert and accounting calculations."""
import pytest
from datetime import date, datetime, timezone

from agrocoop import (
    AlertStatus,
    AlertVariant,
    Expense,
    Fueling,
    MaintenanceRecord,
    OrderStatus,
    ServiceOrder,
    Tractor,
    calc_next_maintenance,
    calculate_autonomy,
    calculate_billing_summary,
    calculate_fleet_autonomy,
    calculate_maintenance_alerts,
    calculate_monthly_ledger,
    check_alert_status,
    current_horimeter,
    parse_timestamp,
    start_of_month,
)

NOW = datetime(2025, 6, 20, 15, 30)


def fuel(horimeter, tractor_id="t1", liters=10, cost=40, when="2025-06-05T10:00:00"):
    return Fueling(f"f{horimeter}", tractor_id, horimeter, liters, cost, when)


def closed_order(initial, final, total, closed_at="2025-06-10T17:00:00", tractor_id="t1"):
    return ServiceOrder(
        id=f"o{initial}",
        producer_id="p1",
        status=OrderStatus.CLOSED,
        created_at="2025-06-10T08:00:00",
        tractor_id=tractor_id,
        initial_horimeter=initial,
        final_horimeter=final,
        closed_at=closed_at,
        total_cost=total,
    )


# =============================================================================
# Helpers
# =============================================================================


class TestParseTimestamp:
    """Tests for parse_timestamp helper function."""

    def test_naive_string(self):
        assert parse_timestamp("2025-06-01T08:30:00") == datetime(2025, 6, 1, 8, 30)

    def test_date_only_string(self):
        assert parse_timestamp("2025-06-01") == datetime(2025, 6, 1)

    def test_date_object(self):
        """YAML may hand back date objects for unquoted dates."""
        assert parse_timestamp(date(2025, 6, 1)) == datetime(2025, 6, 1)

    def test_aware_string_becomes_naive(self):
        parsed = parse_timestamp("2025-06-01T12:00:00Z")
        expected = datetime(2025, 6, 1, 12, tzinfo=timezone.utc).astimezone()
        assert parsed.tzinfo is None
        assert parsed == expected.replace(tzinfo=None)

    def test_missing(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None


class TestStartOfMonth:
    def test_first_day_midnight(self):
        assert start_of_month(NOW) == datetime(2025, 6, 1)


class TestCurrentHorimeter:
    """Tests for current_horimeter helper function."""

    def test_max_of_fuelings(self):
        fuelings = [fuel(50), fuel(120), fuel(80)]
        assert current_horimeter("t1", fuelings) == 120

    def test_ignores_other_tractors(self):
        fuelings = [fuel(50), fuel(900, tractor_id="t2")]
        assert current_horimeter("t1", fuelings) == 50

    def test_zero_without_fuelings(self):
        assert current_horimeter("t1", []) == 0


class TestCalcNextMaintenance:
    def test_last_plus_interval(self):
        assert calc_next_maintenance(1000, 250) == 1250

    def test_missing_last_counts_as_zero(self):
        assert calc_next_maintenance(None, 100) == 100


class TestCheckAlertStatus:
    """Tests for check_alert_status helper function."""

    def test_overdue(self):
        assert check_alert_status(0) == AlertStatus.OVERDUE
        assert check_alert_status(-5) == AlertStatus.OVERDUE

    def test_warning(self):
        assert check_alert_status(0.5) == AlertStatus.WARNING
        assert check_alert_status(30) == AlertStatus.WARNING

    def test_no_alert(self):
        assert check_alert_status(30.1) is None
        assert check_alert_status(200) is None


# =============================================================================
# Maintenance alerts
# =============================================================================


class TestMaintenanceAlerts:
    """Tests for calculate_maintenance_alerts."""

    @pytest.fixture
    def tractor(self):
        return Tractor("t1", "MF 4275", 120, maintenance_interval_hours=100,
                       last_maintenance_horimeter=0)

    def test_warning_scenario(self, tractor):
        """Interval 100 from 0, max horimeter 75 -> due at 100, 25h left, warning."""
        alerts = calculate_maintenance_alerts([tractor], [fuel(40), fuel(75)])
        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.tractor_id == "t1"
        assert alert.tractor_name == "MF 4275"
        assert alert.current_horimeter == 75
        assert alert.next_maintenance_at == 100
        assert alert.hours_until_due == 25
        assert alert.status == AlertStatus.WARNING

    def test_overdue_scenario(self, tractor):
        """Same tractor at horimeter 105 -> -5h, overdue."""
        alerts = calculate_maintenance_alerts([tractor], [fuel(75), fuel(105)])
        assert alerts[0].hours_until_due == -5
        assert alerts[0].status == AlertStatus.OVERDUE

    def test_exactly_due_is_overdue(self, tractor):
        alerts = calculate_maintenance_alerts([tractor], [fuel(100)])
        assert alerts[0].status == AlertStatus.OVERDUE

    def test_beyond_threshold_no_alert(self, tractor):
        assert calculate_maintenance_alerts([tractor], [fuel(69)]) == []

    def test_at_threshold_warns(self, tractor):
        alerts = calculate_maintenance_alerts([tractor], [fuel(70)])
        assert alerts[0].status == AlertStatus.WARNING

    def test_no_interval_never_alerts(self):
        tractor = Tractor("t1", "No plan", 120)
        assert calculate_maintenance_alerts([tractor], [fuel(99999)]) == []
        for variant in AlertVariant:
            assert calculate_maintenance_alerts([tractor], [fuel(99999)], variant) == []

    def test_zero_interval_never_alerts(self):
        tractor = Tractor("t1", "Zero", 120, maintenance_interval_hours=0)
        assert calculate_maintenance_alerts([tractor], [fuel(99999)]) == []

    def test_uses_last_maintenance_horimeter(self):
        tractor = Tractor("t1", "MF", 120, 250, last_maintenance_horimeter=1000)
        alerts = calculate_maintenance_alerts([tractor], [fuel(1230)])
        assert alerts[0].next_maintenance_at == 1250
        assert alerts[0].hours_until_due == 20

    def test_only_matching_fuelings_count(self, tractor):
        fuelings = [fuel(10), fuel(500, tractor_id="t2")]
        assert calculate_maintenance_alerts([tractor], fuelings) == []

    def test_preserves_tractor_order(self):
        a = Tractor("a", "A", 1, 100)
        b = Tractor("b", "B", 1, 100)
        fuelings = [fuel(99, tractor_id="a"), fuel(110, tractor_id="b")]
        alerts = calculate_maintenance_alerts([a, b], fuelings)
        assert [x.tractor_id for x in alerts] == ["a", "b"]

    def test_does_not_mutate_inputs(self, tractor):
        fuelings = [fuel(105), fuel(75)]
        calculate_maintenance_alerts([tractor], fuelings)
        assert [f.horimeter for f in fuelings] == [105, 75]
        assert tractor.last_maintenance_horimeter == 0


class TestAlertVariants:
    """The dashboard and maintenance page qualify tractors differently."""

    def test_dashboard_skips_without_fuelings_or_last_maintenance(self):
        tractor = Tractor("t1", "New", 1, 20)
        assert calculate_maintenance_alerts([tractor], []) == []

    def test_dashboard_requires_positive_current_horimeter(self):
        """Last maintenance alone qualifies, but current 0 suppresses the alert."""
        tractor = Tractor("t1", "Idle", 1, 20, last_maintenance_horimeter=5)
        assert calculate_maintenance_alerts([tractor], [], AlertVariant.DASHBOARD) == []

    def test_dashboard_zero_readings_suppressed(self):
        tractor = Tractor("t1", "Zero", 1, 20)
        alerts = calculate_maintenance_alerts([tractor], [fuel(0)], AlertVariant.DASHBOARD)
        assert alerts == []

    def test_maintenance_page_alerts_at_zero_horimeter(self):
        """Without the current > 0 guard, a small interval alerts at 0h."""
        tractor = Tractor("t1", "Zero", 1, 20)
        alerts = calculate_maintenance_alerts(
            [tractor], [fuel(0)], AlertVariant.MAINTENANCE_PAGE
        )
        assert len(alerts) == 1
        assert alerts[0].hours_until_due == 20
        assert alerts[0].status == AlertStatus.WARNING

    def test_maintenance_page_requires_fuelings(self):
        tractor = Tractor("t1", "Idle", 1, 20, last_maintenance_horimeter=5)
        alerts = calculate_maintenance_alerts([tractor], [], AlertVariant.MAINTENANCE_PAGE)
        assert alerts == []

    def test_variants_agree_on_regular_case(self):
        tractor = Tractor("t1", "MF", 1, 100)
        fuelings = [fuel(80)]
        dashboard = calculate_maintenance_alerts([tractor], fuelings, AlertVariant.DASHBOARD)
        page = calculate_maintenance_alerts([tractor], fuelings, AlertVariant.MAINTENANCE_PAGE)
        assert dashboard == page


# =============================================================================
# Monthly ledger
# =============================================================================


class TestMonthlyLedger:
    """Tests for calculate_monthly_ledger."""

    @pytest.fixture
    def tractor(self):
        return Tractor("t1", "MF 4275", 10)

    def test_scenario(self, tractor):
        """Order 10->35 for 250, fuel 40 and expense 30 this month."""
        orders = [closed_order(10, 35, 250)]
        fuelings = [fuel(35, cost=40)]
        expenses = [Expense("e1", "t1", "Filter", 30, "2025-06-11")]

        ledger = calculate_monthly_ledger([tractor], orders, fuelings, expenses, [], NOW)["t1"]

        assert ledger.total_hours == 25
        assert ledger.total_revenue == 250
        assert ledger.total_expenses == 70
        assert ledger.cost_per_hour == pytest.approx(2.8)
        assert ledger.balance == 180

    def test_no_orders_balance_is_negative_expenses(self, tractor):
        fuelings = [fuel(35, cost=40)]
        records = [MaintenanceRecord("m1", "t1", "Oil", 30, "2025-06-02", cost=60)]

        ledger = calculate_monthly_ledger([tractor], [], fuelings, [], records, NOW)["t1"]

        assert ledger.total_hours == 0
        assert ledger.cost_per_hour == 0
        assert ledger.total_expenses == 100
        assert ledger.balance == -100

    def test_empty_collections_give_zero_ledger(self, tractor):
        ledger = calculate_monthly_ledger([tractor], [], [], [], [], NOW)["t1"]
        assert ledger.total_hours == 0
        assert ledger.total_revenue == 0
        assert ledger.total_expenses == 0
        assert ledger.cost_per_hour == 0
        assert ledger.balance == 0

    def test_no_tractors_gives_empty_dict(self):
        assert calculate_monthly_ledger([], [], [], [], [], NOW) == {}

    def test_excludes_previous_month(self, tractor):
        orders = [closed_order(0, 10, 100, closed_at="2025-05-31T23:59:59")]
        fuelings = [fuel(5, cost=40, when="2025-05-31T10:00:00")]
        ledger = calculate_monthly_ledger([tractor], orders, fuelings, [], [], NOW)["t1"]
        assert ledger.total_hours == 0
        assert ledger.total_expenses == 0

    def test_includes_first_instant_of_month(self, tractor):
        orders = [closed_order(0, 10, 100, closed_at="2025-06-01T00:00:00")]
        ledger = calculate_monthly_ledger([tractor], orders, [], [], [], NOW)["t1"]
        assert ledger.total_revenue == 100

    def test_open_orders_excluded(self, tractor):
        order = closed_order(0, 10, 100)
        order.status = OrderStatus.OPEN
        ledger = calculate_monthly_ledger([tractor], [order], [], [], [], NOW)["t1"]
        assert ledger.total_revenue == 0

    def test_missing_values_count_as_zero(self, tractor):
        order = closed_order(None, 12, None)
        record = MaintenanceRecord("m1", "t1", "Review", 12, "2025-06-02", cost=None)
        ledger = calculate_monthly_ledger([tractor], [order], [], [], [record], NOW)["t1"]
        assert ledger.total_hours == 12
        assert ledger.total_revenue == 0
        assert ledger.total_expenses == 0

    def test_rows_split_by_tractor(self, tractor):
        other = Tractor("t2", "Valtra", 10)
        orders = [closed_order(0, 10, 100), closed_order(0, 4, 60, tractor_id="t2")]
        ledgers = calculate_monthly_ledger([tractor, other], orders, [], [], [], NOW)
        assert ledgers["t1"].total_revenue == 100
        assert ledgers["t2"].total_revenue == 60

    def test_idempotent(self, tractor):
        args = ([tractor], [closed_order(10, 35, 250)], [fuel(35)], [], [], NOW)
        assert calculate_monthly_ledger(*args) == calculate_monthly_ledger(*args)


# =============================================================================
# Autonomy
# =============================================================================


class TestAutonomy:
    """Tests for calculate_autonomy."""

    def test_scenario(self):
        """Fuelings at 50 (10L/$40), 80 (8L/$32), 120: last fill excluded."""
        fuelings = [
            fuel(50, liters=10, cost=40),
            fuel(80, liters=8, cost=32),
            fuel(120, liters=12, cost=48),
        ]
        result = calculate_autonomy(fuelings)
        assert result.total_hours == 70
        assert result.total_liters == 18
        assert result.hours_per_liter == pytest.approx(3.89, abs=0.01)
        assert result.cost_per_hour == pytest.approx(1.03, abs=0.01)

    def test_sorts_by_horimeter(self):
        fuelings = [
            fuel(120, liters=12, cost=48),
            fuel(50, liters=10, cost=40),
            fuel(80, liters=8, cost=32),
        ]
        assert calculate_autonomy(fuelings).total_liters == 18

    def test_none_with_fewer_than_two(self):
        assert calculate_autonomy([]) is None
        assert calculate_autonomy([fuel(50)]) is None

    def test_zero_guards(self):
        """Same horimeter and zero liters give zeros, not errors."""
        result = calculate_autonomy([fuel(50, liters=0, cost=0), fuel(50)])
        assert result.total_hours == 0
        assert result.hours_per_liter == 0
        assert result.cost_per_hour == 0

    def test_fleet_autonomy_skips_sparse_tractors(self):
        tractors = [Tractor("t1", "A", 1), Tractor("t2", "B", 1)]
        fuelings = [fuel(10), fuel(20), fuel(5, tractor_id="t2")]
        result = calculate_fleet_autonomy(tractors, fuelings)
        assert list(result) == ["t1"]
        assert result["t1"].total_hours == 10


# =============================================================================
# Billing
# =============================================================================


class TestBillingSummary:
    """Tests for calculate_billing_summary."""

    @pytest.fixture
    def orders(self):
        return [
            closed_order(0, 1, 100, closed_at="2025-06-02T10:00:00"),
            closed_order(1, 2, 200, closed_at="2025-05-31T18:00:00"),
            closed_order(2, 3, 400, closed_at="2025-01-15T10:00:00"),
            closed_order(3, 4, 800, closed_at="2024-12-20T10:00:00"),
        ]

    def test_this_month(self, orders):
        summary = calculate_billing_summary(orders, "this_month", NOW)
        assert summary.total_revenue == 100
        assert len(summary.orders) == 1

    def test_last_month_includes_last_day(self, orders):
        summary = calculate_billing_summary(orders, "last_month", NOW)
        assert summary.total_revenue == 200

    def test_this_year(self, orders):
        assert calculate_billing_summary(orders, "this_year", NOW).total_revenue == 700

    def test_all(self, orders):
        assert calculate_billing_summary(orders, "all", NOW).total_revenue == 1500

    def test_skips_open_and_unclosed(self, orders):
        open_order = closed_order(5, 6, 999)
        open_order.status = OrderStatus.OPEN
        no_date = closed_order(6, 7, 999, closed_at=None)
        summary = calculate_billing_summary(orders + [open_order, no_date], "all", NOW)
        assert summary.total_revenue == 1500

    def test_unknown_period(self, orders):
        with pytest.raises(ValueError):
            calculate_billing_summary(orders, "fortnight", NOW)
