"""
Unit tests for new-product detection, parameter re-estimation and promotion
"""

from datetime import datetime

import pytest
import pytz

from bid_guardrails.models import LtvMode, ProductConfig, PromotionPerformanceData
from bid_guardrails.promotion import (
    apply_config_updates,
    can_promote_from_new_product,
    execute_promotion,
    is_new_product,
    reestimate_parameters,
)


def performance(**overrides):
    values = {
        "asin": "B0PROMO001",
        "total_sales_90d": 250000,
        "ad_sales_90d": 100000,
        "ad_spend_90d": 30000,
        "clicks_90d": 600,
        "orders_90d": 120,
        "impressions_90d": 20000,
        "new_customers_90d": 60,
        "repeat_orders_90d": 90,
    }
    values.update(overrides)
    return PromotionPerformanceData(**values)


class TestNewProductDetection:
    @pytest.mark.parametrize("days, clicks, orders, expected", [
        (None, 500, 50, True),
        (29, 500, 50, True),
        (30, 99, 50, True),
        (30, 100, 19, True),
        (30, 100, 20, False),
    ])
    def test_is_new_product(self, days, clicks, orders, expected):
        assert is_new_product(days, clicks, orders) is expected

    def test_can_promote_is_inverse_with_data(self):
        assert can_promote_from_new_product(30, 100, 20) is True
        assert can_promote_from_new_product(30, 100, 19) is False
        assert can_promote_from_new_product(30, None, 20) is False


class TestReestimation:
    def setup_method(self):
        self.now = pytz.timezone("Asia/Tokyo").localize(datetime(2026, 5, 1, 6, 0))
        self.config = ProductConfig(asin="B0PROMO001", expected_repeat_orders_assumed=1.6)

    def test_measured(self):
        result = reestimate_parameters(performance(), self.config, now=self.now)
        assert result.estimation_basis == LtvMode.MEASURED
        assert result.expected_repeat_orders_estimated == pytest.approx(2.5)
        assert result.ltv_safety_factor_estimated == 0.8
        assert result.cvr_estimated == pytest.approx(0.2)
        assert result.ctr_estimated == pytest.approx(0.03)
        assert result.acos_actual_90d == pytest.approx(0.3)
        assert result.tacos_actual_90d == pytest.approx(0.12)
        assert result.confidence == pytest.approx(1.0)
        assert result.data_period_days == 90
        assert result.estimated_at == self.now

    def test_early_estimate(self):
        result = reestimate_parameters(
            performance(new_customers_90d=20, repeat_orders_90d=10), self.config, now=self.now
        )
        assert result.estimation_basis == LtvMode.EARLY_ESTIMATE
        assert result.expected_repeat_orders_estimated == pytest.approx(1.4)
        assert result.ltv_safety_factor_estimated == 0.7

    def test_sparse_keeps_assumption(self):
        result = reestimate_parameters(
            performance(new_customers_90d=5, repeat_orders_90d=2), self.config, now=self.now
        )
        assert result.estimation_basis == LtvMode.EARLY_ESTIMATE
        assert result.expected_repeat_orders_estimated == 1.6
        assert result.ltv_safety_factor_estimated == 0.6

    def test_repeat_orders_clamped(self):
        result = reestimate_parameters(
            performance(new_customers_90d=30, repeat_orders_90d=500), self.config, now=self.now
        )
        assert result.expected_repeat_orders_estimated == 10.0

    def test_zero_denominators(self):
        empty = PromotionPerformanceData(asin="B0PROMO001")
        result = reestimate_parameters(empty, self.config, now=self.now)
        assert result.cvr_estimated == 0
        assert result.ctr_estimated == 0
        assert result.acos_actual_90d == 0
        assert result.tacos_actual_90d == 0
        assert result.confidence == 0


class TestPromotion:
    def setup_method(self):
        self.now = pytz.timezone("Asia/Tokyo").localize(datetime(2026, 5, 1, 6, 0))
        self.config = ProductConfig(
            asin="B0PROMO001",
            is_new_product=True,
            days_since_first_impression=45,
            clicks_30d=200,
            orders_30d=40,
        )

    def test_not_promotable(self):
        config = self.config.model_copy(update={"orders_30d": 5})
        assert execute_promotion(performance(), config, now=self.now) is None

    def test_full_diff(self):
        result = execute_promotion(performance(), self.config, now=self.now)
        assert result.previous_status == "NEW_PRODUCT"
        assert result.new_status == "NORMAL"
        assert result.promoted_at == self.now
        assert result.config_updates == {
            "is_new_product": False,
            "ltv_mode": LtvMode.MEASURED,
            "expected_repeat_orders_assumed": pytest.approx(2.5),
            "safety_factor_assumed": 0.8,
            "expected_repeat_orders_measured": pytest.approx(2.5),
            "safety_factor_measured": 0.8,
        }

    def test_low_confidence_diff(self):
        data = performance(clicks_90d=100, orders_90d=20, new_customers_90d=5, repeat_orders_90d=1)
        result = execute_promotion(data, self.config, now=self.now)
        assert result.reestimation.confidence < 0.5
        assert result.config_updates == {"is_new_product": False, "ltv_mode": LtvMode.EARLY_ESTIMATE}

    def test_apply_config_updates(self):
        result = execute_promotion(performance(), self.config, now=self.now)
        promoted = apply_config_updates(self.config, result)
        assert promoted.is_new_product is False
        assert promoted.ltv_mode == LtvMode.MEASURED
        assert promoted.expected_repeat_orders_measured == pytest.approx(2.5)
        assert self.config.is_new_product is True
        assert self.config.ltv_mode == LtvMode.ASSUMED
