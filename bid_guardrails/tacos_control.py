"""
Theoretical max TACOS, TACOS zone control context and target ACOS adjustment

    theoretical_max_tacos = margin_normal x (1 + repeat) x ltv_safety
    tacos_target_mid      = tacos_max x mid_factor
    tacos_delta           = (target_mid - current) / max(target_mid, epsilon)
    target_acos           = clamp(base x (1 + acuity x delta), stage_min, stage_max)

Positive delta means headroom, negative means overspend.
"""

from typing import Optional, Tuple

from .config import settings
from .ltv_calculator import get_margin_rate_normal
from .models import (
    ProductConfig,
    ProductProfile,
    TacosControlContext,
    TacosZone,
    TargetAcosAdjustmentResult,
    TheoreticalMaxTacosResult,
)
from .profiles import get_stage_tacos_control_params


def calculate_theoretical_max_tacos(
    margin_rate_normal: float,
    expected_repeat_orders: float,
    ltv_safety_factor: float,
) -> float:
    if margin_rate_normal <= 0 or expected_repeat_orders < 1 or ltv_safety_factor <= 0:
        return 0.0
    return margin_rate_normal * (1 + expected_repeat_orders) * ltv_safety_factor


def calculate_theoretical_max_tacos_capped(
    margin_rate_normal: float,
    expected_repeat_orders: float,
    ltv_safety_factor: float,
    tmax_cap_global: Optional[float] = None,
) -> float:
    if tmax_cap_global is None:
        tmax_cap_global = settings.tmax_cap_global
    uncapped = calculate_theoretical_max_tacos(
        margin_rate_normal, expected_repeat_orders, ltv_safety_factor
    )
    return min(uncapped, tmax_cap_global)


def calculate_max_ad_spend_per_user(
    price: float,
    margin_rate_normal: float,
    expected_repeat_orders: float,
    ltv_safety_factor: float,
) -> float:
    """Ad spend a single acquired customer can absorb over their lifetime."""
    if price <= 0 or margin_rate_normal <= 0 or expected_repeat_orders < 1 or ltv_safety_factor <= 0:
        return 0.0
    return price * margin_rate_normal * (1 + expected_repeat_orders) * ltv_safety_factor


def resolve_ltv_parameters(
    config: ProductConfig,
    profile: Optional[ProductProfile] = None,
) -> Tuple[float, float]:
    """
    (expected_repeat_orders, ltv_safety_factor) for TACOS math.

    New products run on the profile's conservative priors until promoted.
    """
    if config.is_new_product and profile is not None:
        return profile.expected_repeat_orders_prior, profile.ltv_safety_factor_prior
    return config.expected_repeat_orders_assumed, config.safety_factor_assumed


def calculate_theoretical_max_tacos_from_config(
    config: ProductConfig,
    profile: Optional[ProductProfile] = None,
    tmax_cap_global: Optional[float] = None,
) -> TheoreticalMaxTacosResult:
    if tmax_cap_global is None:
        tmax_cap_global = settings.tmax_cap_global

    margin = get_margin_rate_normal(config)
    repeat, safety = resolve_ltv_parameters(config, profile)
    price = config.price or 0.0

    theoretical = calculate_theoretical_max_tacos(margin, repeat, safety)
    return TheoreticalMaxTacosResult(
        max_ad_spend_per_user=calculate_max_ad_spend_per_user(price, margin, repeat, safety),
        theoretical_max_tacos=theoretical,
        theoretical_max_tacos_capped=min(theoretical, tmax_cap_global),
        is_capped=theoretical > tmax_cap_global,
    )


def determine_tacos_zone(current_tacos: float, tacos_target_mid: float, tacos_max: float) -> TacosZone:
    if current_tacos <= tacos_target_mid:
        return TacosZone.GREEN
    if current_tacos <= tacos_max:
        return TacosZone.ORANGE
    return TacosZone.RED


def calculate_tacos_delta(
    current_tacos: float,
    tacos_target_mid: float,
    epsilon: Optional[float] = None,
) -> float:
    if epsilon is None:
        epsilon = settings.tacos_delta_epsilon
    return (tacos_target_mid - current_tacos) / max(tacos_target_mid, epsilon)


def build_tacos_control_context(
    config: ProductConfig,
    profile: ProductProfile,
    current_tacos: float,
    tmax_cap_global: Optional[float] = None,
    is_growing_candidate: Optional[bool] = None,
    orange_zone_months: Optional[int] = None,
    red_zone_months: Optional[int] = None,
) -> TacosControlContext:
    theoretical = calculate_theoretical_max_tacos_from_config(config, profile, tmax_cap_global)
    tacos_max = theoretical.theoretical_max_tacos_capped

    profile_type = config.product_profile_type or profile.type
    control_params = get_stage_tacos_control_params(profile_type, config.lifecycle_state)

    tacos_target_mid = tacos_max * control_params.mid_factor

    return TacosControlContext(
        tacos_max=tacos_max,
        tacos_target_mid=tacos_target_mid,
        current_tacos=current_tacos,
        tacos_zone=determine_tacos_zone(current_tacos, tacos_target_mid, tacos_max),
        tacos_delta=calculate_tacos_delta(current_tacos, tacos_target_mid),
        control_params=control_params,
        is_growing_candidate=is_growing_candidate,
        orange_zone_months=orange_zone_months,
        red_zone_months=red_zone_months,
    )


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def adjust_target_acos_by_tacos(
    base_ltv_acos: float,
    context: TacosControlContext,
) -> TargetAcosAdjustmentResult:
    """
    Scale the LTV ACOS by TACOS headroom and clamp it to the stage band.

    In the RED zone the result is further capped at tacos_max x penalty_red,
    but never below stage_acos_min, so the output always stays inside the band.
    """
    params = context.control_params

    adjustment_factor = 1 + params.tacos_acuity * context.tacos_delta
    raw_target_acos = base_ltv_acos * adjustment_factor

    target_acos = clamp(raw_target_acos, params.stage_acos_min, params.stage_acos_max)
    stage_clamp_applied = target_acos != raw_target_acos

    red_penalty_applied = False
    if context.tacos_zone == TacosZone.RED:
        penalty_limit = max(context.tacos_max * params.tacos_penalty_factor_red, params.stage_acos_min)
        if target_acos > penalty_limit:
            target_acos = penalty_limit
            red_penalty_applied = True

    return TargetAcosAdjustmentResult(
        base_ltv_acos=base_ltv_acos,
        raw_target_acos=raw_target_acos,
        target_acos=target_acos,
        stage_clamp_applied=stage_clamp_applied,
        red_penalty_applied=red_penalty_applied,
        applied_tacos_delta=context.tacos_delta,
        applied_tacos_acuity=params.tacos_acuity,
        adjustment_factor=adjustment_factor,
        tacos_zone=context.tacos_zone,
    )


def calculate_target_acos_with_tacos_adjustment(
    config: ProductConfig,
    profile: ProductProfile,
    context: TacosControlContext,
) -> TargetAcosAdjustmentResult:
    # Base follows the theoretical max TACOS formula
    margin = get_margin_rate_normal(config)
    repeat, safety = resolve_ltv_parameters(config, profile)
    base_ltv_acos = margin * (1 + repeat) * safety
    return adjust_target_acos_by_tacos(base_ltv_acos, context)
