"""
Unit tests for theoretical max TACOS, zone context and target ACOS adjustment
"""

import pytest

from bid_guardrails.models import (
    LifecycleState,
    ProductConfig,
    ProductProfileType,
    TacosControlContext,
    TacosZone,
)
from bid_guardrails.profiles import (
    DEFAULT_PROFILE,
    SUPPLEMENT_HIGH_LTV_PROFILE,
    get_stage_tacos_control_params,
)
from bid_guardrails.tacos_control import (
    adjust_target_acos_by_tacos,
    build_tacos_control_context,
    calculate_max_ad_spend_per_user,
    calculate_tacos_delta,
    calculate_target_acos_with_tacos_adjustment,
    calculate_theoretical_max_tacos,
    calculate_theoretical_max_tacos_capped,
    calculate_theoretical_max_tacos_from_config,
    determine_tacos_zone,
    resolve_ltv_parameters,
)


def high_ltv_config(**overrides):
    values = {
        "asin": "B0HIGHLTV1",
        "product_profile_type": ProductProfileType.SUPPLEMENT_HIGH_LTV,
        "lifecycle_state": LifecycleState.GROW,
        "margin_rate_normal": 0.55,
        "expected_repeat_orders_assumed": 1.7,
        "safety_factor_assumed": 0.7,
        "price": 5000,
    }
    values.update(overrides)
    return ProductConfig(**values)


class TestTheoreticalMaxTacos:
    def test_reference_example(self):
        assert calculate_theoretical_max_tacos(0.55, 1.7, 0.7) == pytest.approx(1.0395)
        assert calculate_theoretical_max_tacos_capped(0.55, 1.7, 0.7) == pytest.approx(0.7)

    def test_invalid_inputs_yield_zero(self):
        assert calculate_theoretical_max_tacos(0, 1.7, 0.7) == 0
        assert calculate_theoretical_max_tacos(0.55, 0.9, 0.7) == 0
        assert calculate_theoretical_max_tacos(0.55, 1.7, 0) == 0

    def test_capped_never_exceeds_cap_or_uncapped(self):
        for margin in (0.1, 0.3, 0.55, 0.9):
            for repeat in (1.0, 1.7, 4.0):
                for safety in (0.3, 0.7, 1.0):
                    for cap in (0.3, 0.7):
                        uncapped = calculate_theoretical_max_tacos(margin, repeat, safety)
                        capped = calculate_theoretical_max_tacos_capped(margin, repeat, safety, cap)
                        assert capped <= cap
                        assert capped <= uncapped

    def test_max_ad_spend_per_user(self):
        assert calculate_max_ad_spend_per_user(5000, 0.55, 1.7, 0.7) == pytest.approx(5197.5)
        assert calculate_max_ad_spend_per_user(0, 0.55, 1.7, 0.7) == 0

    def test_new_product_uses_profile_priors(self):
        config = high_ltv_config(is_new_product=True)
        assert resolve_ltv_parameters(config, SUPPLEMENT_HIGH_LTV_PROFILE) == (1.3, 0.5)
        assert resolve_ltv_parameters(high_ltv_config(), SUPPLEMENT_HIGH_LTV_PROFILE) == (1.7, 0.7)

    def test_from_config(self):
        result = calculate_theoretical_max_tacos_from_config(high_ltv_config(), SUPPLEMENT_HIGH_LTV_PROFILE)
        assert result.theoretical_max_tacos == pytest.approx(1.0395)
        assert result.theoretical_max_tacos_capped == pytest.approx(0.7)
        assert result.is_capped is True
        assert result.max_ad_spend_per_user == pytest.approx(5197.5)

    def test_from_config_without_price(self):
        result = calculate_theoretical_max_tacos_from_config(high_ltv_config(price=None), SUPPLEMENT_HIGH_LTV_PROFILE)
        assert result.max_ad_spend_per_user == 0


class TestZoneAndDelta:
    def test_zone_boundaries(self):
        mid, tacos_max = 0.35, 0.5
        assert determine_tacos_zone(mid, mid, tacos_max) == TacosZone.GREEN
        assert determine_tacos_zone(tacos_max, mid, tacos_max) == TacosZone.ORANGE
        assert determine_tacos_zone(tacos_max + 1e-9, mid, tacos_max) == TacosZone.RED

    def test_delta_sign(self):
        assert calculate_tacos_delta(0.2, 0.25) == pytest.approx(0.2)
        assert calculate_tacos_delta(0.3, 0.25) == pytest.approx(-0.2)

    def test_delta_epsilon_floor(self):
        assert calculate_tacos_delta(0.05, 0.0) == pytest.approx(-5.0)
        assert calculate_tacos_delta(0.05, 0.0, epsilon=0.1) == pytest.approx(-0.5)


class TestControlContext:
    def test_green_context(self):
        context = build_tacos_control_context(high_ltv_config(), SUPPLEMENT_HIGH_LTV_PROFILE, 0.4)
        assert context.tacos_max == pytest.approx(0.7)
        # HIGH_LTV x GROW mid_factor 0.75
        assert context.tacos_target_mid == pytest.approx(0.525)
        assert context.tacos_zone == TacosZone.GREEN
        assert context.tacos_delta == pytest.approx((0.525 - 0.4) / 0.525)

    @pytest.mark.parametrize("current, zone", [
        (0.5, TacosZone.GREEN),
        (0.6, TacosZone.ORANGE),
        (0.7, TacosZone.ORANGE),
        (0.8, TacosZone.RED),
    ])
    def test_zones(self, current, zone):
        context = build_tacos_control_context(high_ltv_config(), SUPPLEMENT_HIGH_LTV_PROFILE, current)
        assert context.tacos_zone == zone

    def test_profile_type_falls_back_to_profile(self):
        config = high_ltv_config(product_profile_type=None)
        context = build_tacos_control_context(config, DEFAULT_PROFILE, 0.4)
        assert context.control_params == get_stage_tacos_control_params(ProductProfileType.DEFAULT, LifecycleState.GROW)

    def test_zone_counters_carried(self):
        context = build_tacos_control_context(
            high_ltv_config(), SUPPLEMENT_HIGH_LTV_PROFILE, 0.4,
            is_growing_candidate=True, orange_zone_months=2, red_zone_months=1,
        )
        assert context.is_growing_candidate is True
        assert context.orange_zone_months == 2
        assert context.red_zone_months == 1


class TestTargetAcosAdjustment:
    def setup_method(self):
        # HIGH_LTV x GROW: acuity 1.0, penalty 0.80, band [0.10, 0.60]
        self.params = get_stage_tacos_control_params(ProductProfileType.SUPPLEMENT_HIGH_LTV, LifecycleState.GROW)

    def _context(self, zone, delta, tacos_max=0.7):
        return TacosControlContext(
            tacos_max=tacos_max,
            tacos_target_mid=tacos_max * self.params.mid_factor,
            current_tacos=0.0,
            tacos_zone=zone,
            tacos_delta=delta,
            control_params=self.params,
        )

    def test_headroom_raises_target(self):
        result = adjust_target_acos_by_tacos(0.3, self._context(TacosZone.GREEN, 0.2))
        assert result.adjustment_factor == pytest.approx(1.2)
        assert result.target_acos == pytest.approx(0.36)
        assert result.stage_clamp_applied is False
        assert result.red_penalty_applied is False

    def test_stage_max_clamp(self):
        result = adjust_target_acos_by_tacos(0.55, self._context(TacosZone.GREEN, 0.2))
        assert result.raw_target_acos == pytest.approx(0.66)
        assert result.target_acos == pytest.approx(0.60)
        assert result.stage_clamp_applied is True

    def test_red_penalty_not_applied_when_already_below(self):
        result = adjust_target_acos_by_tacos(0.5, self._context(TacosZone.RED, -0.5))
        assert result.target_acos == pytest.approx(0.25)
        assert result.red_penalty_applied is False

    def test_red_penalty_applied(self):
        result = adjust_target_acos_by_tacos(0.5, self._context(TacosZone.RED, -0.1, tacos_max=0.3))
        assert result.target_acos == pytest.approx(0.24)
        assert result.red_penalty_applied is True
        assert result.tacos_zone == TacosZone.RED

    def test_red_penalty_never_breaks_stage_floor(self):
        result = adjust_target_acos_by_tacos(0.5, self._context(TacosZone.RED, -0.1, tacos_max=0.1))
        assert result.target_acos == pytest.approx(self.params.stage_acos_min)
        assert result.red_penalty_applied is True

    def test_output_within_stage_band(self):
        for zone in TacosZone:
            for base in (0.0, 0.2, 0.5, 1.0):
                for delta in (-3.0, -0.5, 0.0, 0.5, 3.0):
                    for tacos_max in (0.05, 0.3, 0.7):
                        result = adjust_target_acos_by_tacos(base, self._context(zone, delta, tacos_max))
                        assert self.params.stage_acos_min <= result.target_acos <= self.params.stage_acos_max

    def test_idempotent(self):
        context = self._context(TacosZone.ORANGE, -0.3)
        assert adjust_target_acos_by_tacos(0.4, context) == adjust_target_acos_by_tacos(0.4, context)

    def test_with_config_uses_theoretical_base(self):
        config = high_ltv_config()
        context = build_tacos_control_context(config, SUPPLEMENT_HIGH_LTV_PROFILE, 0.525)
        result = calculate_target_acos_with_tacos_adjustment(config, SUPPLEMENT_HIGH_LTV_PROFILE, context)
        assert result.base_ltv_acos == pytest.approx(1.0395)
        assert result.target_acos == pytest.approx(0.60)
