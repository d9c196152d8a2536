"""
realtyhub/test_subscription.py

Tests for subscription state: validity window, billing window arithmetic,
limit snapshotting, cancellation, and parsing of tier / cycle names.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from realtyhub.errors import MalformedInput
from realtyhub.models import BillingCycle, PlanTier, SubscriptionState
from realtyhub.plans import GIB, PlanCatalog, PlanDefinition
from realtyhub import subscription


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


# ============================================================================
# Validity
# ============================================================================

class TestValidity:
    def test_null_end_date_is_never_valid(self):
        state = SubscriptionState(end_date=None)
        assert subscription.is_valid(state, utc(2024, 1, 1)) is False

    def test_valid_strictly_before_end_date(self):
        end = utc(2024, 7, 1)
        state = SubscriptionState(start_date=utc(2024, 6, 1), end_date=end)
        assert subscription.is_valid(state, end - timedelta(seconds=1)) is True

    def test_invalid_at_exact_end_date(self):
        end = utc(2024, 7, 1)
        state = SubscriptionState(start_date=utc(2024, 6, 1), end_date=end)
        assert subscription.is_valid(state, end) is False

    def test_state_is_frozen(self):
        state = SubscriptionState(end_date=utc(2024, 7, 1))
        with pytest.raises(ValidationError):
            state.listing_limit = 999


# ============================================================================
# Billing windows
# ============================================================================

class TestBillingWindow:
    def test_monthly_adds_one_calendar_month(self):
        assert subscription.compute_billing_window(BillingCycle.monthly, utc(2024, 3, 15)) == utc(2024, 4, 15)

    def test_yearly_adds_one_calendar_year(self):
        assert subscription.compute_billing_window(BillingCycle.yearly, utc(2024, 3, 15)) == utc(2025, 3, 15)

    def test_month_end_clamps_in_leap_year(self):
        assert subscription.compute_billing_window(BillingCycle.monthly, utc(2024, 1, 31)) == utc(2024, 2, 29)

    def test_month_end_clamps_in_common_year(self):
        assert subscription.compute_billing_window(BillingCycle.monthly, utc(2023, 1, 31)) == utc(2023, 2, 28)

    def test_leap_day_plus_one_year(self):
        assert subscription.compute_billing_window(BillingCycle.yearly, utc(2024, 2, 29)) == utc(2025, 2, 28)

    def test_accepts_raw_cycle_names(self):
        assert subscription.compute_billing_window("yearly", utc(2024, 3, 15)) == utc(2025, 3, 15)


# ============================================================================
# Subscribe / cancel
# ============================================================================

class TestSubscribe:
    def test_tier_defaults(self):
        assert subscription.snapshot_limits(PlanTier.basic) == (1 * GIB, 10)
        assert subscription.snapshot_limits(PlanTier.pro) == (5 * GIB, 50)
        assert subscription.snapshot_limits(PlanTier.enterprise) == (10 * GIB, 200)

    def test_subscribe_builds_window_and_limits(self):
        now = utc(2024, 6, 15, 12)
        state = subscription.subscribe("pro", "monthly", now=now)

        assert state.plan_tier == PlanTier.pro
        assert state.billing_cycle == BillingCycle.monthly
        assert state.start_date == now
        assert state.end_date == utc(2024, 7, 15, 12)
        assert state.storage_limit_bytes == 5 * GIB
        assert state.listing_limit == 50
        assert state.is_valid(now)

    def test_limits_come_from_the_given_catalog(self):
        catalog = PlanCatalog([
            PlanDefinition(
                tier=PlanTier.basic,
                display_name="Starter",
                description="",
                price_monthly=1.0,
                price_yearly=10.0,
                storage_limit_bytes=12345,
                listing_limit=3,
            )
        ])
        state = subscription.subscribe(PlanTier.basic, now=utc(2024, 1, 1), catalog=catalog)
        assert (state.storage_limit_bytes, state.listing_limit) == (12345, 3)

    def test_later_subscriptions_do_not_touch_existing_state(self):
        first = subscription.subscribe("basic", now=utc(2024, 1, 1))
        subscription.subscribe("enterprise", now=utc(2024, 1, 2))
        assert first.plan_tier == PlanTier.basic
        assert first.listing_limit == 10

    def test_cancel_expires_immediately(self):
        now = utc(2024, 6, 15)
        state = subscription.subscribe("basic", now=now - timedelta(days=3))
        cancelled = subscription.cancel(state, now=now)

        assert cancelled.end_date == now
        assert not cancelled.is_valid(now)
        # original value is untouched
        assert state.is_valid(now)
        assert cancelled.listing_limit == state.listing_limit

    def test_charge_amount(self):
        assert subscription.charge_amount(PlanTier.pro, BillingCycle.yearly) == 790.0
        assert subscription.charge_amount(PlanTier.enterprise, BillingCycle.monthly) == 199.0


class TestParsing:
    def test_unknown_tier_is_malformed(self):
        with pytest.raises(MalformedInput) as exc:
            subscription.ensure_tier("gold")
        assert exc.value.field == "plan_tier"
        assert exc.value.status_code == 400

    def test_unknown_cycle_is_malformed(self):
        with pytest.raises(MalformedInput) as exc:
            subscription.ensure_cycle("weekly")
        assert exc.value.field == "billing_cycle"

    def test_names_are_case_insensitive(self):
        assert subscription.ensure_tier("PRO") == PlanTier.pro
        assert subscription.ensure_cycle("Yearly") == BillingCycle.yearly
