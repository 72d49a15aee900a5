"""
Classement d'affichage des échéances (payée, en retard, aujourd'hui, bientôt, en attente).
"""

from datetime import date, datetime, timedelta

import pytest

from app.infra.models import InstallmentStatus
from app.services.errors import InvalidDateError
from app.services.installment_status import (
    DisplayState,
    Urgency,
    classify_installment,
    safe_classify,
    to_calendar_date,
)

TODAY = date(2024, 1, 15)


class TestPaid:
    @pytest.mark.parametrize("offset", [-400, -1, 0, 1, 90])
    def test_paid_ignores_due_date(self, offset):
        c = classify_installment(TODAY + timedelta(days=offset), "paid", now=TODAY)
        assert c.state == DisplayState.PAID
        assert c.days_late is None
        assert c.badge == "Payé"

    def test_paid_enum_status(self):
        c = classify_installment(TODAY, InstallmentStatus.PAID, now=TODAY)
        assert c.state == DisplayState.PAID

    def test_paid_with_unparsable_date_is_still_paid(self):
        assert classify_installment("pas une date", "paid", now=TODAY).state == DisplayState.PAID


class TestOverdue:
    def test_scenario_two_weeks_late(self):
        c = classify_installment("2024-01-01", "pending", now=date(2024, 1, 15))
        assert c.state == DisplayState.OVERDUE
        assert c.days_late == 14
        assert c.badge == "En retard (14j)"

    @pytest.mark.parametrize("days", [1, 2, 31, 365])
    def test_days_late_at_least_one(self, days):
        c = classify_installment(TODAY - timedelta(days=days), "pending", now=TODAY)
        assert c.state == DisplayState.OVERDUE
        assert c.days_late == days >= 1

    def test_yesterday_late_even_early_in_the_morning(self):
        c = classify_installment(date(2024, 1, 14), "pending", now=datetime(2024, 1, 15, 0, 1))
        assert c.state == DisplayState.OVERDUE
        assert c.days_late == 1


class TestDueToday:
    @pytest.mark.parametrize("hour", [0, 9, 23])
    def test_today_regardless_of_time(self, hour):
        c = classify_installment(TODAY, "pending", now=datetime(2024, 1, 15, hour, 59))
        assert c.state == DisplayState.DUE_TODAY
        assert c.days_until == 0
        assert c.badge == "Aujourd'hui"

    def test_due_datetime_string_on_same_day(self):
        c = classify_installment("2024-01-15T18:30:00Z", "pending", now=datetime(2024, 1, 15, 8, 0))
        assert c.state == DisplayState.DUE_TODAY


class TestDueSoonAndPending:
    def test_scenario_four_days_out(self):
        c = classify_installment("2024-02-01", "pending", now=date(2024, 1, 28))
        assert c.state == DisplayState.DUE_SOON
        assert c.days_until == 4
        assert c.badge == "Dans 4j"

    def test_seven_days_is_still_soon(self):
        c = classify_installment(TODAY + timedelta(days=7), "pending", now=TODAY)
        assert c.state == DisplayState.DUE_SOON

    def test_eight_days_is_pending(self):
        c = classify_installment(TODAY + timedelta(days=8), "pending", now=TODAY)
        assert c.state == DisplayState.PENDING
        assert c.badge == "En attente"

    def test_threshold_is_configurable(self):
        c = classify_installment(TODAY + timedelta(days=8), "pending", now=TODAY, soon_days=10)
        assert c.state == DisplayState.DUE_SOON


class TestUrgency:
    @pytest.mark.parametrize(
        "offset, expected",
        [(0, Urgency.CRITICAL), (3, Urgency.CRITICAL), (4, Urgency.WARNING), (7, Urgency.WARNING), (20, Urgency.NORMAL)],
    )
    def test_tiers(self, offset, expected):
        c = classify_installment(TODAY + timedelta(days=offset), "pending", now=TODAY)
        assert c.urgency == expected

    def test_warning_tier_follows_soon_threshold(self):
        c = classify_installment(TODAY + timedelta(days=9), "pending", now=TODAY, soon_days=10)
        assert c.urgency == Urgency.WARNING

    def test_no_urgency_when_late_or_paid(self):
        assert classify_installment(TODAY - timedelta(days=1), "pending", now=TODAY).urgency is None
        assert classify_installment(TODAY, "paid", now=TODAY).urgency is None


class TestPurity:
    def test_same_input_same_output(self):
        a = classify_installment("2024-01-10", "pending", now=TODAY)
        b = classify_installment("2024-01-10", "pending", now=TODAY)
        assert a == b

    def test_default_now_is_today(self):
        c = classify_installment(date.today(), "pending")
        assert c.state == DisplayState.DUE_TODAY


class TestInvalidDates:
    @pytest.mark.parametrize("value", ["", "   ", "pas une date", "2024-13-45", None, 20240101])
    def test_raises_invalid_date(self, value):
        with pytest.raises(InvalidDateError):
            classify_installment(value, "pending", now=TODAY)

    def test_safe_classify_returns_none(self):
        assert safe_classify("2024-02-30", "pending", now=TODAY) is None

    def test_invalid_date_is_a_value_error(self):
        with pytest.raises(ValueError):
            to_calendar_date("n/a")
