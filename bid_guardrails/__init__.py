# Re-export the engine's public surface
from .config import settings
from .logger import get_logger
from .models import (
    BidAction,
    GuardedAction,
    GuardrailContext,
    KeywordRole,
    LifecycleState,
    LossBudgetState,
    LtvMode,
    PresaleType,
    ProductConfig,
    ProductProfileType,
    RevenueModel,
    RiskLevel,
    SalePhase,
    TacosZone,
)
from .profiles import get_product_profile, get_stage_tacos_control_params
from .ltv_calculator import compute_base_ltv_target_acos, compute_final_target_acos, get_target_acos
from .tacos_control import adjust_target_acos_by_tacos, build_tacos_control_context
from .lifecycle import determine_bid_control_action, judge_tacos_based_lifecycle
from .risk import assess_product_risk, assign_profile_by_competition
from .growth import assess_growth_candidate
from .guardrails import fallback_action, get_role_lifecycle_guardrails
from .promotion import apply_config_updates, execute_promotion
from .evaluator import ProductEvaluator

__all__ = [
    "settings",
    "get_logger",
    "BidAction",
    "GuardedAction",
    "GuardrailContext",
    "KeywordRole",
    "LifecycleState",
    "LossBudgetState",
    "LtvMode",
    "PresaleType",
    "ProductConfig",
    "ProductProfileType",
    "RevenueModel",
    "RiskLevel",
    "SalePhase",
    "TacosZone",
    "get_product_profile",
    "get_stage_tacos_control_params",
    "compute_base_ltv_target_acos",
    "compute_final_target_acos",
    "get_target_acos",
    "adjust_target_acos_by_tacos",
    "build_tacos_control_context",
    "determine_bid_control_action",
    "judge_tacos_based_lifecycle",
    "assess_product_risk",
    "assign_profile_by_competition",
    "assess_growth_candidate",
    "fallback_action",
    "get_role_lifecycle_guardrails",
    "apply_config_updates",
    "execute_promotion",
    "ProductEvaluator",
]
