"""
New-product detection and promotion

A product stays NEW_PRODUCT (running on profile priors) until it has enough
history. On promotion its LTV parameters are re-estimated from 90-day data and
returned as a config diff; the caller applies and persists it.
"""

from datetime import datetime
from typing import Optional

from .logger import get_logger
from .models import (
    LtvMode,
    ParameterReestimationResult,
    ProductConfig,
    PromotionPerformanceData,
    PromotionResult,
    local_now,
)

logger = get_logger(__name__)

# Promotion thresholds
MIN_DAYS_SINCE_FIRST_IMPRESSION = 30
MIN_CLICKS_30D = 100
MIN_ORDERS_30D = 20

# Reestimation
DATA_PERIOD_DAYS = 90
MEDIUM_CONFIDENCE_THRESHOLD = 0.5
MIN_NEW_CUSTOMERS_FOR_MEASURED = 30
MIN_REPEAT_ORDERS_FOR_MEASURED = 50
MIN_NEW_CUSTOMERS_FOR_EARLY_ESTIMATE = 10
EARLY_ESTIMATE_REPEAT_WEIGHT = 0.8
MIN_REPEAT_ORDERS = 1.0
MAX_REPEAT_ORDERS = 10.0

SAFETY_FACTOR_MEASURED = 0.8
SAFETY_FACTOR_PARTIAL = 0.7
SAFETY_FACTOR_SPARSE = 0.6
MIN_NEW_CUSTOMERS_FOR_PARTIAL_SAFETY = 20

# Confidence saturation points
CONFIDENCE_FULL_CLICKS = 500
CONFIDENCE_FULL_ORDERS = 100
CONFIDENCE_FULL_NEW_CUSTOMERS = 50


def is_new_product(
    days_since_first_impression: Optional[int],
    clicks_30d: Optional[int],
    orders_30d: Optional[int],
) -> bool:
    """Missing data counts as new; otherwise new while any threshold is unmet."""
    if days_since_first_impression is None or clicks_30d is None or orders_30d is None:
        return True
    return (
        days_since_first_impression < MIN_DAYS_SINCE_FIRST_IMPRESSION
        or clicks_30d < MIN_CLICKS_30D
        or orders_30d < MIN_ORDERS_30D
    )


def can_promote_from_new_product(
    days_since_first_impression: Optional[int],
    clicks_30d: Optional[int],
    orders_30d: Optional[int],
) -> bool:
    if days_since_first_impression is None or clicks_30d is None or orders_30d is None:
        return False
    return (
        days_since_first_impression >= MIN_DAYS_SINCE_FIRST_IMPRESSION
        and clicks_30d >= MIN_CLICKS_30D
        and orders_30d >= MIN_ORDERS_30D
    )


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def _clip_repeat_orders(value: float) -> float:
    return min(max(value, MIN_REPEAT_ORDERS), MAX_REPEAT_ORDERS)


def reestimate_parameters(
    data: PromotionPerformanceData,
    config: ProductConfig,
    now: Optional[datetime] = None,
) -> ParameterReestimationResult:
    new_customers = data.new_customers_90d
    repeat_orders = data.repeat_orders_90d

    # Expected repeat orders
    if new_customers >= MIN_NEW_CUSTOMERS_FOR_MEASURED and repeat_orders >= MIN_REPEAT_ORDERS_FOR_MEASURED:
        repeat_estimated = _clip_repeat_orders(1 + repeat_orders / new_customers)
        basis = LtvMode.MEASURED
    elif new_customers >= MIN_NEW_CUSTOMERS_FOR_EARLY_ESTIMATE and repeat_orders > 0:
        repeat_estimated = _clip_repeat_orders(
            1 + EARLY_ESTIMATE_REPEAT_WEIGHT * repeat_orders / new_customers
        )
        basis = LtvMode.EARLY_ESTIMATE
    else:
        # Too little data: keep the category assumption
        repeat_estimated = _clip_repeat_orders(config.expected_repeat_orders_assumed)
        basis = LtvMode.EARLY_ESTIMATE

    # LTV safety factor
    if basis == LtvMode.MEASURED:
        safety_estimated = SAFETY_FACTOR_MEASURED
    elif new_customers >= MIN_NEW_CUSTOMERS_FOR_PARTIAL_SAFETY:
        safety_estimated = SAFETY_FACTOR_PARTIAL
    else:
        safety_estimated = SAFETY_FACTOR_SPARSE

    confidence = (
        min(data.clicks_90d / CONFIDENCE_FULL_CLICKS, 1)
        + min(data.orders_90d / CONFIDENCE_FULL_ORDERS, 1)
        + min(new_customers / CONFIDENCE_FULL_NEW_CUSTOMERS, 1)
    ) / 3

    return ParameterReestimationResult(
        asin=data.asin,
        expected_repeat_orders_estimated=repeat_estimated,
        ltv_safety_factor_estimated=safety_estimated,
        cvr_estimated=_ratio(data.orders_90d, data.clicks_90d),
        ctr_estimated=_ratio(data.clicks_90d, data.impressions_90d),
        acos_actual_90d=_ratio(data.ad_spend_90d, data.ad_sales_90d),
        tacos_actual_90d=_ratio(data.ad_spend_90d, data.total_sales_90d),
        estimation_basis=basis,
        confidence=confidence,
        estimated_at=now or local_now(),
        data_period_days=DATA_PERIOD_DAYS,
    )


def execute_promotion(
    data: PromotionPerformanceData,
    config: ProductConfig,
    now: Optional[datetime] = None,
) -> Optional[PromotionResult]:
    """
    Promote a NEW_PRODUCT to NORMAL if it clears every threshold.

    Returns None when the product is not yet promotable. The diff always clears
    is_new_product and records the new ltv_mode; estimated repeat/safety values
    are only written at medium confidence or better, and the measured fields
    only when the estimate is MEASURED.
    """
    if not can_promote_from_new_product(
        config.days_since_first_impression, config.clicks_30d, config.orders_30d
    ):
        return None

    now = now or local_now()
    reestimation = reestimate_parameters(data, config, now)

    config_updates = {
        "is_new_product": False,
        "ltv_mode": reestimation.estimation_basis,
    }
    if reestimation.confidence >= MEDIUM_CONFIDENCE_THRESHOLD:
        config_updates["expected_repeat_orders_assumed"] = reestimation.expected_repeat_orders_estimated
        config_updates["safety_factor_assumed"] = reestimation.ltv_safety_factor_estimated
    if reestimation.estimation_basis == LtvMode.MEASURED:
        config_updates["expected_repeat_orders_measured"] = reestimation.expected_repeat_orders_estimated
        config_updates["safety_factor_measured"] = reestimation.ltv_safety_factor_estimated

    logger.info(
        f"Promoting {data.asin} out of NEW_PRODUCT",
        extra={"fields": {
            "asin": data.asin,
            "estimation_basis": reestimation.estimation_basis.value,
            "confidence": round(reestimation.confidence, 3),
        }},
    )

    return PromotionResult(
        asin=data.asin,
        previous_status="NEW_PRODUCT",
        new_status="NORMAL",
        reestimation=reestimation,
        config_updates=config_updates,
        promoted_at=now,
    )


def apply_config_updates(config: ProductConfig, result: PromotionResult) -> ProductConfig:
    """Return a copy of config with the promotion diff applied; config itself is untouched."""
    return config.model_copy(update=result.config_updates)
