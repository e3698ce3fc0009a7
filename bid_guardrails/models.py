"""
Domain types for the guardrail engine

Enums are closed str-enums so members compare equal to their wire strings
(BigQuery rows, JSON payloads). Inputs are frozen pydantic models, outputs are
frozen dataclasses with an as_dict() serializer for audit logging.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import pytz
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .config import settings


# =============================================================================
# Enums
# =============================================================================

class RevenueModel(str, Enum):
    LTV = "LTV"
    SINGLE_PURCHASE = "SINGLE_PURCHASE"


class LifecycleState(str, Enum):
    """Advertising lifecycle stage, most aggressive first."""
    LAUNCH_HARD = "LAUNCH_HARD"
    LAUNCH_SOFT = "LAUNCH_SOFT"
    GROW = "GROW"
    HARVEST = "HARVEST"


class LtvMode(str, Enum):
    ASSUMED = "ASSUMED"
    EARLY_ESTIMATE = "EARLY_ESTIMATE"
    MEASURED = "MEASURED"


class ProductProfileType(str, Enum):
    DEFAULT = "DEFAULT"
    SUPPLEMENT_HIGH_LTV = "SUPPLEMENT_HIGH_LTV"
    SUPPLEMENT_STANDARD = "SUPPLEMENT_STANDARD"
    SINGLE_PURCHASE = "SINGLE_PURCHASE"


class TacosZone(str, Enum):
    GREEN = "GREEN"
    ORANGE = "ORANGE"
    RED = "RED"


class KeywordRole(str, Enum):
    """Strategic tier of a keyword, most protected first."""
    CORE = "CORE"
    SUPPORT = "SUPPORT"
    EXPERIMENT = "EXPERIMENT"


class SalePhase(str, Enum):
    NORMAL = "NORMAL"
    PRE_SALE = "PRE_SALE"
    MAIN_SALE = "MAIN_SALE"
    COOL_DOWN = "COOL_DOWN"


class PresaleType(str, Enum):
    BUYING = "BUYING"
    HOLD_BACK = "HOLD_BACK"
    MIXED = "MIXED"
    NONE = "NONE"


class LossBudgetState(str, Enum):
    SAFE = "SAFE"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class BidAction(str, Enum):
    STRONG_UP = "STRONG_UP"
    MILD_UP = "MILD_UP"
    KEEP = "KEEP"
    MILD_DOWN = "MILD_DOWN"
    STRONG_DOWN = "STRONG_DOWN"
    STOP = "STOP"


class GuardedAction(str, Enum):
    """Reduction actions gated by role guardrails."""
    DOWN = "DOWN"
    STRONG_DOWN = "STRONG_DOWN"
    STOP = "STOP"
    NEGATIVE = "NEGATIVE"


def parse_enum(enum_cls, value, default=None):
    """Coerce a raw string to an enum member, returning default on miss."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default


def local_now() -> datetime:
    """Timezone-aware 'now' in the configured business timezone."""
    return datetime.now(pytz.timezone(settings.timezone))


# =============================================================================
# Inputs
# =============================================================================

class ProductConfig(BaseModel):
    """
    Per-ASIN economic configuration, loaded read-only from the product_config table.

    Range and enum checks run at construction; the engine never re-validates.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    # Identifiers
    asin: str
    profile_id: Optional[str] = None
    product_id: Optional[str] = None
    sku: Optional[str] = None
    is_active: bool = True

    revenue_model: RevenueModel = RevenueModel.LTV
    lifecycle_state: LifecycleState = LifecycleState.GROW
    ltv_mode: LtvMode = LtvMode.ASSUMED

    # Margins (margin_rate is the deprecated single-rate field)
    margin_rate: Optional[float] = Field(default=None, ge=0, le=1)
    margin_rate_normal: Optional[float] = Field(default=None, ge=0, le=1)
    margin_rate_blended: Optional[float] = Field(default=None, ge=0, le=1)

    # LTV assumptions
    expected_repeat_orders_assumed: float = Field(default=1.0, ge=1)
    expected_repeat_orders_measured: Optional[float] = Field(default=None, ge=1)
    safety_factor_assumed: float = Field(default=0.7, gt=0, le=1)
    safety_factor_measured: float = Field(default=0.85, gt=0, le=1)

    max_bid_multiplier: float = Field(default=3.0, ge=1, le=10)
    min_bid_multiplier: float = Field(default=0.5, gt=0, le=1)

    # Launch history
    launch_date: Optional[date] = None
    days_since_launch: Optional[int] = Field(default=None, ge=0)
    new_customers_total: int = Field(default=0, ge=0)

    # New-product tracking
    is_new_product: bool = False
    days_since_first_impression: Optional[int] = Field(default=None, ge=0)
    clicks_30d: Optional[int] = Field(default=None, ge=0)
    orders_30d: Optional[int] = Field(default=None, ge=0)

    # Price / profile / risk
    price: Optional[float] = Field(default=None, ge=0)
    product_profile_type: Optional[ProductProfileType] = None
    cumulative_loss: float = 0.0
    consecutive_loss_months: int = Field(default=0, ge=0)

    notes: Optional[str] = None

    @model_validator(mode="after")
    def _check_bid_multipliers(self):
        if self.max_bid_multiplier < self.min_bid_multiplier:
            raise ValueError(
                f"max_bid_multiplier ({self.max_bid_multiplier}) must be >= "
                f"min_bid_multiplier ({self.min_bid_multiplier})"
            )
        return self


class PromotionPerformanceData(BaseModel):
    """Trailing 90-day aggregates used to re-estimate LTV parameters."""

    model_config = ConfigDict(frozen=True)

    asin: str
    total_sales_90d: float = 0.0
    ad_sales_90d: float = 0.0
    ad_spend_90d: float = 0.0
    clicks_90d: int = 0
    orders_90d: int = 0
    impressions_90d: int = 0
    new_customers_90d: int = 0
    repeat_orders_90d: int = 0
    repeat_sales_90d: float = 0.0
    organic_sales_90d: float = 0.0
    avg_order_value_90d: float = 0.0


class GrowthAssessmentData(BaseModel):
    model_config = ConfigDict(frozen=True)

    asin: str
    organic_growth_rate: float
    organic_growth_rate_yoy: Optional[float] = None
    product_rating: float
    competitor_median_rating: float
    review_count: int = 0
    competitor_median_review_count: Optional[int] = None
    organic_to_ad_sales_ratio: float
    ad_dependency_ratio: float
    bsr_trend: Optional[int] = Field(default=None, ge=-1, le=1)
    bsr_rank: Optional[int] = None


class CompetitionData(BaseModel):
    model_config = ConfigDict(frozen=True)

    asin: str
    keyword_or_category: str = ""
    strong_competitor_count: int = 0
    median_cpc_to_price_ratio: float = 0.0
    big_brand_share: float = 0.0
    median_cpc: Optional[float] = None
    avg_product_price: Optional[float] = None
    fetched_at: Optional[datetime] = None


# =============================================================================
# Outputs
# =============================================================================

def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {_plain(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class _Record:
    def as_dict(self) -> Dict[str, Any]:
        """JSON-safe view for logging and API responses."""
        return _plain(self)


@dataclass(frozen=True)
class StageTacosConfig(_Record):
    min_tacos: float
    max_tacos: float


@dataclass(frozen=True)
class StageTacosControlParams(_Record):
    mid_factor: float
    tacos_acuity: float
    tacos_penalty_factor_red: float
    stage_acos_min: float
    stage_acos_max: float


@dataclass(frozen=True)
class ProductProfile(_Record):
    type: ProductProfileType
    description: str
    margin_rate_normal_default: float
    expected_repeat_orders_assumed: float
    ltv_safety_factor: float
    loss_budget_multiple_initial: float
    loss_budget_multiple_mature: float
    expected_repeat_orders_prior: float
    ltv_safety_factor_prior: float
    max_consecutive_loss_months: Dict[LifecycleState, int]
    tacos_config: Dict[LifecycleState, StageTacosConfig]


@dataclass(frozen=True)
class LifecycleTacosZoneTolerance(_Record):
    tolerate_orange: bool
    tolerate_red: bool
    orange_tolerance_months: int
    red_tolerance_months_for_growth: int


@dataclass(frozen=True)
class BaseLtvAcosDetails(_Record):
    revenue_model: RevenueModel
    ltv_mode: Optional[LtvMode]
    margin_rate: float
    expected_repeat_orders: Optional[float]
    safety_factor: float
    calculated_acos: float
    clipped: bool


@dataclass(frozen=True)
class FinalTargetAcosDetails(_Record):
    base_ltv_acos: float
    lifecycle_state: LifecycleState
    multiplier: float
    cap: float
    final_acos: float


@dataclass(frozen=True)
class TheoreticalMaxTacosResult(_Record):
    max_ad_spend_per_user: float
    theoretical_max_tacos: float
    theoretical_max_tacos_capped: float
    is_capped: bool


@dataclass(frozen=True)
class TacosControlContext(_Record):
    tacos_max: float
    tacos_target_mid: float
    current_tacos: float
    tacos_zone: TacosZone
    tacos_delta: float
    control_params: StageTacosControlParams
    is_growing_candidate: Optional[bool] = None
    orange_zone_months: Optional[int] = None
    red_zone_months: Optional[int] = None


@dataclass(frozen=True)
class TargetAcosAdjustmentResult(_Record):
    base_ltv_acos: float
    raw_target_acos: float
    target_acos: float
    stage_clamp_applied: bool
    red_penalty_applied: bool
    applied_tacos_delta: float
    applied_tacos_acuity: float
    adjustment_factor: float
    tacos_zone: TacosZone


@dataclass(frozen=True)
class TacosLifecycleJudgment(_Record):
    current_state: LifecycleState
    recommended_state: LifecycleState
    state_change_recommended: bool
    bid_reduction_recommended: bool
    bid_stop_recommended: bool
    target_acos_tightening_recommended: bool
    reasons: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class BidControlAction(_Record):
    bid_multiplier_adjustment: float
    stop_bidding: bool
    target_acos_adjustment: float
    reason: str


@dataclass(frozen=True)
class RiskAssessment(_Record):
    is_over_cumulative_loss: bool
    is_over_consecutive_loss_months: bool
    is_at_risk: bool
    cumulative_loss_ratio: float
    consecutive_loss_months_ratio: float
    risk_level: RiskLevel


@dataclass(frozen=True)
class ProfileAssignmentResult(_Record):
    profile_type: ProductProfileType
    competition_intensity_score: int
    assignment_method: str
    reason: str
    assigned_at: datetime


@dataclass(frozen=True)
class GrowthConditions(_Record):
    condition_organic_growing: bool
    condition_rating_healthy: bool
    condition_ads_to_organic: bool
    organic_growth_rate: float
    rating_difference: float
    organic_to_ad_ratio: float
    ad_dependency: float


@dataclass(frozen=True)
class GrowthCandidateResult(_Record):
    is_growing_candidate: bool
    conditions: GrowthConditions
    growth_score: int
    recommended_lifecycle_state: LifecycleState
    reasons: List[str]
    assessed_at: datetime


@dataclass(frozen=True)
class GuardrailContext(_Record):
    role: KeywordRole
    lifecycle_stage: LifecycleState
    sale_phase: SalePhase = SalePhase.NORMAL
    presale_type: PresaleType = PresaleType.NONE
    loss_budget_state: LossBudgetState = LossBudgetState.SAFE


@dataclass(frozen=True)
class RoleLifecycleGuardrails(_Record):
    allow_stop: bool
    allow_negative: bool
    allow_strong_down: bool
    min_clicks_down: int
    min_clicks_strong_down: int
    min_clicks_stop: int
    overspend_threshold_down: float
    overspend_threshold_strong_down: float
    overspend_threshold_stop: float
    max_down_step_ratio: float
    reason: str


@dataclass(frozen=True)
class ParameterReestimationResult(_Record):
    asin: str
    expected_repeat_orders_estimated: float
    ltv_safety_factor_estimated: float
    cvr_estimated: float
    ctr_estimated: float
    acos_actual_90d: float
    tacos_actual_90d: float
    estimation_basis: LtvMode
    confidence: float
    estimated_at: datetime
    data_period_days: int


@dataclass(frozen=True)
class PromotionResult(_Record):
    asin: str
    previous_status: str
    new_status: str
    reestimation: ParameterReestimationResult
    config_updates: Dict[str, Any]
    promoted_at: datetime


@dataclass(frozen=True)
class ProductEvaluation(_Record):
    asin: str
    profile_type: ProductProfileType
    lifecycle_state: LifecycleState
    final_target_acos: float
    final_acos_details: FinalTargetAcosDetails
    tacos_context: TacosControlContext
    acos_adjustment: TargetAcosAdjustmentResult
    judgment: TacosLifecycleJudgment
    bid_control: BidControlAction
    risk: RiskAssessment
    loss_budget_state: LossBudgetState
    growth: Optional[GrowthCandidateResult] = None
