"""
Loss-budget risk assessment and competition-based profile assignment
"""

from datetime import datetime
from typing import Optional

from .config import settings
from .ltv_calculator import get_margin_rate_normal
from .models import (
    CompetitionData,
    LifecycleState,
    LossBudgetState,
    ProductConfig,
    ProductProfile,
    ProductProfileType,
    ProfileAssignmentResult,
    RevenueModel,
    RiskAssessment,
    RiskLevel,
    local_now,
)
from .tacos_control import resolve_ltv_parameters

HIGH_RISK_RATIO = 0.8
MEDIUM_RISK_RATIO = 0.5

# Competition intensity thresholds, one point each
HIGH_COMPETITION_STRONG_COMPETITOR_COUNT = 15
HIGH_COMPETITION_CPC_PRICE_RATIO = 0.05
HIGH_COMPETITION_BIG_BRAND_SHARE = 0.5


# =============================================================================
# LTV gross profit and loss limits
# =============================================================================

def calculate_expected_ltv_gross_profit(
    price: float,
    margin_rate_normal: float,
    expected_repeat_orders: float,
) -> float:
    if price <= 0 or margin_rate_normal <= 0 or expected_repeat_orders < 1:
        return 0.0
    return price * margin_rate_normal * (1 + expected_repeat_orders)


def calculate_expected_ltv_gross_profit_from_config(
    config: ProductConfig,
    profile: Optional[ProductProfile] = None,
) -> float:
    repeat, _ = resolve_ltv_parameters(config, profile)
    return calculate_expected_ltv_gross_profit(
        config.price or 0.0, get_margin_rate_normal(config), repeat
    )


def calculate_product_cumulative_loss_limit(
    expected_ltv_gross_profit: float,
    loss_budget_multiple: float,
) -> float:
    if expected_ltv_gross_profit <= 0 or loss_budget_multiple <= 0:
        return 0.0
    return expected_ltv_gross_profit * loss_budget_multiple


def calculate_product_cumulative_loss_limit_from_config(
    config: ProductConfig,
    profile: ProductProfile,
) -> float:
    """New products get the generous initial multiple, promoted ones the mature multiple."""
    ltv_gross_profit = calculate_expected_ltv_gross_profit_from_config(config, profile)
    multiple = (
        profile.loss_budget_multiple_initial
        if config.is_new_product
        else profile.loss_budget_multiple_mature
    )
    return calculate_product_cumulative_loss_limit(ltv_gross_profit, multiple)


def calculate_global_cumulative_loss_limit(
    total_expected_ltv_gross_profit: float,
    global_loss_budget_rate: Optional[float] = None,
) -> float:
    if global_loss_budget_rate is None:
        global_loss_budget_rate = settings.global_loss_budget_rate
    if total_expected_ltv_gross_profit <= 0 or global_loss_budget_rate <= 0:
        return 0.0
    return total_expected_ltv_gross_profit * global_loss_budget_rate


def is_over_cumulative_loss_limit(cumulative_loss: float, loss_limit: float) -> bool:
    return cumulative_loss > loss_limit


def is_over_consecutive_loss_months_limit(consecutive_loss_months: int, max_months: int) -> bool:
    return consecutive_loss_months > max_months


def get_max_consecutive_loss_months(profile: ProductProfile, lifecycle_state: LifecycleState) -> int:
    return profile.max_consecutive_loss_months.get(
        lifecycle_state, profile.max_consecutive_loss_months[LifecycleState.GROW]
    )


# =============================================================================
# Risk assessment
# =============================================================================

def assess_product_risk(config: ProductConfig, profile: ProductProfile) -> RiskAssessment:
    """
    Compare a product's accumulated loss against its profile's loss budget.

    CRITICAL when either hard limit is exceeded, then HIGH / MEDIUM by the
    worse of the two utilisation ratios.
    """
    cumulative_loss = config.cumulative_loss
    loss_months = config.consecutive_loss_months
    loss_limit = calculate_product_cumulative_loss_limit_from_config(config, profile)
    max_months = get_max_consecutive_loss_months(profile, config.lifecycle_state)

    over_loss = is_over_cumulative_loss_limit(cumulative_loss, loss_limit)
    over_months = is_over_consecutive_loss_months_limit(loss_months, max_months)

    loss_ratio = cumulative_loss / loss_limit if loss_limit > 0 else 0.0
    months_ratio = loss_months / max_months if max_months > 0 else 0.0

    if over_loss or over_months:
        risk_level = RiskLevel.CRITICAL
    elif loss_ratio >= HIGH_RISK_RATIO or months_ratio >= HIGH_RISK_RATIO:
        risk_level = RiskLevel.HIGH
    elif loss_ratio >= MEDIUM_RISK_RATIO or months_ratio >= MEDIUM_RISK_RATIO:
        risk_level = RiskLevel.MEDIUM
    else:
        risk_level = RiskLevel.LOW

    return RiskAssessment(
        is_over_cumulative_loss=over_loss,
        is_over_consecutive_loss_months=over_months,
        is_at_risk=over_loss or over_months,
        cumulative_loss_ratio=loss_ratio,
        consecutive_loss_months_ratio=months_ratio,
        risk_level=risk_level,
    )


def loss_budget_state_from_risk(assessment: RiskAssessment) -> LossBudgetState:
    """Collapse the four risk levels into the three loss-budget states keyword guardrails read."""
    return {
        RiskLevel.LOW: LossBudgetState.SAFE,
        RiskLevel.MEDIUM: LossBudgetState.WARNING,
        RiskLevel.HIGH: LossBudgetState.WARNING,
        RiskLevel.CRITICAL: LossBudgetState.CRITICAL,
    }.get(assessment.risk_level, LossBudgetState.WARNING)


# =============================================================================
# Competition -> profile assignment
# =============================================================================

def calculate_competition_intensity(data: CompetitionData) -> int:
    score = 0
    if data.strong_competitor_count >= HIGH_COMPETITION_STRONG_COMPETITOR_COUNT:
        score += 1
    if data.median_cpc_to_price_ratio >= HIGH_COMPETITION_CPC_PRICE_RATIO:
        score += 1
    if data.big_brand_share >= HIGH_COMPETITION_BIG_BRAND_SHARE:
        score += 1
    return score


def get_recommended_profile_by_competition(
    intensity_score: int,
    revenue_model: RevenueModel,
) -> ProductProfileType:
    if revenue_model == RevenueModel.SINGLE_PURCHASE:
        return ProductProfileType.SINGLE_PURCHASE
    if intensity_score in (0, 1):
        return ProductProfileType.SUPPLEMENT_HIGH_LTV
    if intensity_score in (2, 3):
        return ProductProfileType.SUPPLEMENT_STANDARD
    return ProductProfileType.DEFAULT


def _assignment_reason(score: int, data: CompetitionData) -> str:
    if score == 0:
        return "low competition: high-LTV profile"
    if score == 1:
        return "moderate competition: high-LTV profile, repeat purchases still expected"
    if score == 2:
        return (
            f"high competition: standard profile "
            f"({data.strong_competitor_count} strong competitors, "
            f"CPC/price {data.median_cpc_to_price_ratio * 100:.1f}%)"
        )
    if score == 3:
        return f"extreme competition: conservative profile (big-brand share {data.big_brand_share * 100:.0f}%)"
    return "default profile"


def assign_profile_by_competition(
    config: ProductConfig,
    data: CompetitionData,
    now: Optional[datetime] = None,
) -> ProfileAssignmentResult:
    score = calculate_competition_intensity(data)
    return ProfileAssignmentResult(
        profile_type=get_recommended_profile_by_competition(score, config.revenue_model),
        competition_intensity_score=score,
        assignment_method="AUTO",
        reason=_assignment_reason(score, data),
        assigned_at=now or local_now(),
    )
