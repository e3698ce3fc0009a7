"""
LTV-based target ACOS calculation

Turns a product's revenue model, LTV assumptions and lifecycle stage into
a base and a final target ACOS.
"""

from datetime import date
from typing import Optional, Tuple

from .models import (
    BaseLtvAcosDetails,
    FinalTargetAcosDetails,
    LifecycleState,
    LtvMode,
    ProductConfig,
    RevenueModel,
)

DEFAULT_MARGIN_RATE = 0.3

SINGLE_PURCHASE_SAFETY_FACTOR = 0.8

# Lifecycle stage caps
LAUNCH_HARD_TARGET_ACOS_CAP = 0.60
LAUNCH_SOFT_TARGET_ACOS_CAP = 0.50
GROW_TARGET_ACOS_CAP = 0.45
HARVEST_TARGET_ACOS_CAP = 0.35

MIN_ACOS = 0.0
MAX_ACOS = 0.9

HARVEST_MARGIN_MULTIPLIER = 0.8
LAUNCH_SOFT_LTV_MULTIPLIER = 0.9
GROW_LTV_MULTIPLIER = 0.8

# LTV mode thresholds (days since launch, cumulative new customers)
EARLY_ESTIMATE_DAYS_MIN = 60
MEASURED_DAYS_MIN = 120
EARLY_ESTIMATE_NEW_CUSTOMERS_MIN = 50
MEASURED_NEW_CUSTOMERS_MIN = 200


def get_margin_rate_normal(config: ProductConfig) -> float:
    """Normal-day margin: margin_rate_normal, else the deprecated margin_rate."""
    if config.margin_rate_normal is not None:
        return config.margin_rate_normal
    if config.margin_rate is not None:
        return config.margin_rate
    return DEFAULT_MARGIN_RATE


def get_margin_rate_blended(config: ProductConfig) -> float:
    """Sale-inclusive realised margin, falling back to the normal margin."""
    if config.margin_rate_blended is not None:
        return config.margin_rate_blended
    return get_margin_rate_normal(config)


def _clip_acos(acos: float) -> float:
    return min(max(acos, MIN_ACOS), MAX_ACOS)


def determine_ltv_mode(
    days_since_launch: Optional[int],
    new_customers_total: int,
) -> LtvMode:
    if days_since_launch is None:
        return LtvMode.ASSUMED

    if days_since_launch >= MEASURED_DAYS_MIN and new_customers_total >= MEASURED_NEW_CUSTOMERS_MIN:
        return LtvMode.MEASURED

    if days_since_launch >= EARLY_ESTIMATE_DAYS_MIN and new_customers_total >= EARLY_ESTIMATE_NEW_CUSTOMERS_MIN:
        return LtvMode.EARLY_ESTIMATE

    return LtvMode.ASSUMED


def calculate_days_since_launch(
    launch_date: Optional[date],
    reference_date: Optional[date] = None,
) -> Optional[int]:
    if launch_date is None:
        return None
    if reference_date is None:
        reference_date = date.today()
    return max(0, (reference_date - launch_date).days)


def compute_base_ltv_target_acos(config: ProductConfig) -> Tuple[float, BaseLtvAcosDetails]:
    """
    Base target ACOS from LTV economics.

    - SINGLE_PURCHASE: margin x SINGLE_PURCHASE_SAFETY_FACTOR
    - LTV, MEASURED with a measured repeat count: margin x repeat_measured x safety_measured
    - LTV otherwise: margin x repeat_assumed x safety_assumed

    The result is clipped to [MIN_ACOS, MAX_ACOS].
    """
    margin = get_margin_rate_normal(config)

    if config.revenue_model == RevenueModel.SINGLE_PURCHASE:
        ltv_mode = None
        repeat = 1.0
        safety = SINGLE_PURCHASE_SAFETY_FACTOR
        raw_acos = margin * safety
    elif config.ltv_mode == LtvMode.MEASURED and config.expected_repeat_orders_measured is not None:
        ltv_mode = config.ltv_mode
        repeat = config.expected_repeat_orders_measured
        safety = config.safety_factor_measured
        raw_acos = margin * repeat * safety
    else:
        # ASSUMED / EARLY_ESTIMATE run on the provisional LTV
        ltv_mode = config.ltv_mode
        repeat = config.expected_repeat_orders_assumed
        safety = config.safety_factor_assumed
        raw_acos = margin * repeat * safety

    acos = _clip_acos(raw_acos)
    details = BaseLtvAcosDetails(
        revenue_model=config.revenue_model,
        ltv_mode=ltv_mode,
        margin_rate=margin,
        expected_repeat_orders=repeat,
        safety_factor=safety,
        calculated_acos=raw_acos,
        clipped=acos != raw_acos,
    )
    return acos, details


def compute_final_target_acos(config: ProductConfig) -> Tuple[float, FinalTargetAcosDetails]:
    """Apply the lifecycle multiplier and cap to the base LTV ACOS."""
    base_acos, _ = compute_base_ltv_target_acos(config)
    margin = get_margin_rate_normal(config)
    state = config.lifecycle_state

    if state == LifecycleState.HARVEST:
        # Profit recovery: margin-based, independent of LTV
        multiplier = HARVEST_MARGIN_MULTIPLIER
        cap = HARVEST_TARGET_ACOS_CAP
        final_acos = min(margin * multiplier, cap)
    elif state == LifecycleState.LAUNCH_HARD:
        multiplier = 1.0
        cap = LAUNCH_HARD_TARGET_ACOS_CAP
        final_acos = min(base_acos, cap)
    elif state == LifecycleState.LAUNCH_SOFT:
        multiplier = LAUNCH_SOFT_LTV_MULTIPLIER
        cap = LAUNCH_SOFT_TARGET_ACOS_CAP
        final_acos = min(base_acos * multiplier, cap)
    else:
        multiplier = GROW_LTV_MULTIPLIER
        cap = GROW_TARGET_ACOS_CAP
        final_acos = min(base_acos * multiplier, cap)

    details = FinalTargetAcosDetails(
        base_ltv_acos=base_acos,
        lifecycle_state=state,
        multiplier=multiplier,
        cap=cap,
        final_acos=final_acos,
    )
    return final_acos, details


def get_target_acos(config: ProductConfig) -> float:
    return compute_final_target_acos(config)[0]


def get_target_acos_with_details(config: ProductConfig) -> dict:
    _, base_details = compute_base_ltv_target_acos(config)
    final_acos, final_details = compute_final_target_acos(config)
    return {
        "target_acos": final_acos,
        "base_ltv_acos_details": base_details,
        "final_acos_details": final_details,
    }
