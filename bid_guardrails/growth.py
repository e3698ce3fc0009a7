"""
Growth candidate assessment

A product is a growing candidate when organic sales are growing, its rating is
healthy against competitors, and ad-driven sales are converting into organic
sales. The 0-100 growth score maps onto a recommended lifecycle stage.
"""

import math
from datetime import datetime
from typing import Optional

from .models import (
    GrowthAssessmentData,
    GrowthCandidateResult,
    GrowthConditions,
    LifecycleState,
    local_now,
)

MIN_ORGANIC_GROWTH_RATE = 0.05
HIGH_ORGANIC_GROWTH_RATE = 0.20
MIN_HEALTHY_RATING = 3.8
MIN_RATING_ADVANTAGE = -0.3
MIN_ORGANIC_TO_AD_RATIO = 0.8
MAX_AD_DEPENDENCY_RATIO = 0.7

AGGRESSIVE_SCORE = 80
GROW_SCORE = 60
HOLD_SCORE = 40


def evaluate_organic_growth_condition(data: GrowthAssessmentData) -> bool:
    return data.organic_growth_rate >= MIN_ORGANIC_GROWTH_RATE


def evaluate_rating_health_condition(data: GrowthAssessmentData) -> bool:
    rating_difference = data.product_rating - data.competitor_median_rating
    return data.product_rating >= MIN_HEALTHY_RATING and rating_difference >= MIN_RATING_ADVANTAGE


def evaluate_ads_to_organic_condition(data: GrowthAssessmentData) -> bool:
    return (
        data.organic_to_ad_sales_ratio >= MIN_ORGANIC_TO_AD_RATIO
        and data.ad_dependency_ratio <= MAX_AD_DEPENDENCY_RATIO
    )


def calculate_growth_score(conditions: GrowthConditions, data: GrowthAssessmentData) -> int:
    score = 0.0

    # Organic growth, up to 40
    if conditions.condition_organic_growing:
        score += 20 + 20 * min(data.organic_growth_rate / HIGH_ORGANIC_GROWTH_RATE, 1)

    # Rating health, up to 30
    if conditions.condition_rating_healthy:
        score += 20 + 10 * min((data.product_rating - MIN_HEALTHY_RATING) / 0.5, 1)

    # Ad -> organic conversion, up to 30
    if conditions.condition_ads_to_organic:
        score += 20 + 10 * min((data.organic_to_ad_sales_ratio - MIN_ORGANIC_TO_AD_RATIO) / 0.5, 1)

    # BSR trend bonus
    if data.bsr_trend == 1:
        score += 10
    elif data.bsr_trend == 0:
        score += 5

    # Half-up rounding
    return min(int(math.floor(score + 0.5)), 100)


def get_recommended_lifecycle_by_growth(growth_score: int, current_state: LifecycleState) -> LifecycleState:
    if growth_score >= AGGRESSIVE_SCORE:
        if current_state == LifecycleState.HARVEST:
            return LifecycleState.GROW
        if current_state == LifecycleState.LAUNCH_HARD:
            return LifecycleState.LAUNCH_HARD
        return LifecycleState.LAUNCH_SOFT
    if growth_score >= GROW_SCORE:
        return LifecycleState.GROW
    if growth_score >= HOLD_SCORE:
        return LifecycleState.HARVEST if current_state == LifecycleState.HARVEST else LifecycleState.GROW
    return LifecycleState.HARVEST


def _growth_reasons(data: GrowthAssessmentData, conditions: GrowthConditions) -> list:
    reasons = []

    if conditions.condition_organic_growing:
        reasons.append(f"organic sales growing (+{data.organic_growth_rate * 100:.1f}%)")
    else:
        reasons.append(f"organic sales stalled ({data.organic_growth_rate * 100:.1f}%)")

    if conditions.condition_rating_healthy:
        reasons.append(
            f"rating healthy ({data.product_rating:.1f} vs competitors {data.competitor_median_rating:.1f})"
        )
    elif data.product_rating < MIN_HEALTHY_RATING:
        reasons.append(f"rating low ({data.product_rating:.1f})")
    else:
        reasons.append(f"rating behind competitors (diff {conditions.rating_difference:.1f})")

    if conditions.condition_ads_to_organic:
        reasons.append(f"ads converting to organic (ratio {data.organic_to_ad_sales_ratio * 100:.0f}%)")
    elif data.ad_dependency_ratio > MAX_AD_DEPENDENCY_RATIO:
        reasons.append(f"high ad dependency ({data.ad_dependency_ratio * 100:.0f}%)")
    else:
        reasons.append(f"weak organic conversion (ratio {data.organic_to_ad_sales_ratio * 100:.0f}%)")

    return reasons


def assess_growth_candidate(
    data: GrowthAssessmentData,
    current_state: LifecycleState,
    now: Optional[datetime] = None,
) -> GrowthCandidateResult:
    conditions = GrowthConditions(
        condition_organic_growing=evaluate_organic_growth_condition(data),
        condition_rating_healthy=evaluate_rating_health_condition(data),
        condition_ads_to_organic=evaluate_ads_to_organic_condition(data),
        organic_growth_rate=data.organic_growth_rate,
        rating_difference=data.product_rating - data.competitor_median_rating,
        organic_to_ad_ratio=data.organic_to_ad_sales_ratio,
        ad_dependency=data.ad_dependency_ratio,
    )

    is_growing_candidate = (
        conditions.condition_organic_growing
        and conditions.condition_rating_healthy
        and conditions.condition_ads_to_organic
    )
    growth_score = calculate_growth_score(conditions, data)

    return GrowthCandidateResult(
        is_growing_candidate=is_growing_candidate,
        conditions=conditions,
        growth_score=growth_score,
        recommended_lifecycle_state=get_recommended_lifecycle_by_growth(growth_score, current_state),
        reasons=_growth_reasons(data, conditions),
        assessed_at=now or local_now(),
    )
