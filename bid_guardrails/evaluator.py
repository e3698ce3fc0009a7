"""
Product evaluator

Runs the full per-product decision flow:

    profile -> final target ACOS -> growth (optional) -> TACOS control context
    -> target ACOS adjustment + lifecycle judgment -> bid control action
    -> risk -> loss-budget state

and derives per-keyword guardrails from the result.
"""

from datetime import datetime
from typing import Optional

from .config import settings
from .growth import assess_growth_candidate
from .guardrails import (
    compute_overspend_ratio,
    fallback_action,
    get_role_lifecycle_guardrails,
    meets_action_threshold,
)
from .lifecycle import determine_bid_control_action, judge_tacos_based_lifecycle
from .logger import get_logger
from .ltv_calculator import compute_final_target_acos
from .models import (
    BidAction,
    GuardedAction,
    GrowthAssessmentData,
    GuardrailContext,
    KeywordRole,
    PresaleType,
    ProductConfig,
    ProductEvaluation,
    RoleLifecycleGuardrails,
    SalePhase,
    parse_enum,
)
from .profiles import get_product_profile
from .risk import assess_product_risk, loss_budget_state_from_risk
from .tacos_control import adjust_target_acos_by_tacos, build_tacos_control_context

logger = get_logger(__name__)

# Requested bid action -> the guarded action whose thresholds apply
THRESHOLD_ACTIONS = {
    BidAction.MILD_DOWN: GuardedAction.DOWN,
    BidAction.STRONG_DOWN: GuardedAction.STRONG_DOWN,
    BidAction.STOP: GuardedAction.STOP,
}


class ProductEvaluator:
    def __init__(self, tmax_cap_global: float = None):
        if tmax_cap_global is None:
            tmax_cap_global = settings.tmax_cap_global
        self.tmax_cap_global = tmax_cap_global

        self.stats = {
            "products_evaluated": 0,
            "growing_candidates": 0,
            "stage_changes_recommended": 0,
            "bid_reductions": 0,
            "bid_stops": 0,
            "at_risk": 0,
            "keywords_reviewed": 0,
            "keyword_actions_redirected": 0,
        }

    def evaluate(
        self,
        config: ProductConfig,
        current_tacos: float,
        growth_data: Optional[GrowthAssessmentData] = None,
        orange_zone_months: int = 0,
        red_zone_months: int = 0,
        now: Optional[datetime] = None,
    ) -> ProductEvaluation:
        """Evaluate one product. Pure apart from stats and logging; config is never modified."""

        # 1. Profile and LTV target
        profile = get_product_profile(config.product_profile_type)
        final_acos, final_details = compute_final_target_acos(config)

        # 2. Growth
        growth = None
        if growth_data is not None:
            growth = assess_growth_candidate(growth_data, config.lifecycle_state, now)

        # 3. TACOS zone
        context = build_tacos_control_context(
            config,
            profile,
            current_tacos,
            tmax_cap_global=self.tmax_cap_global,
            is_growing_candidate=growth.is_growing_candidate if growth else None,
            orange_zone_months=orange_zone_months,
            red_zone_months=red_zone_months,
        )

        # 4. Adjustment and lifecycle judgment
        adjustment = adjust_target_acos_by_tacos(final_details.base_ltv_acos, context)
        judgment = judge_tacos_based_lifecycle(context, config.lifecycle_state)
        bid_control = determine_bid_control_action(judgment, context)

        # 5. Risk
        risk = assess_product_risk(config, profile)
        loss_budget_state = loss_budget_state_from_risk(risk)

        evaluation = ProductEvaluation(
            asin=config.asin,
            profile_type=profile.type,
            lifecycle_state=config.lifecycle_state,
            final_target_acos=final_acos,
            final_acos_details=final_details,
            tacos_context=context,
            acos_adjustment=adjustment,
            judgment=judgment,
            bid_control=bid_control,
            risk=risk,
            loss_budget_state=loss_budget_state,
            growth=growth,
        )
        self._record(evaluation)
        return evaluation

    def guardrails_for(
        self,
        evaluation: ProductEvaluation,
        role: KeywordRole,
        sale_phase: Optional[SalePhase] = None,
        presale_type: Optional[PresaleType] = None,
    ) -> RoleLifecycleGuardrails:
        ctx = GuardrailContext(
            role=role,
            lifecycle_stage=evaluation.lifecycle_state,
            sale_phase=parse_enum(SalePhase, sale_phase or settings.default_sale_phase, SalePhase.NORMAL),
            presale_type=parse_enum(PresaleType, presale_type or settings.default_presale_type, PresaleType.NONE),
            loss_budget_state=evaluation.loss_budget_state,
        )
        return get_role_lifecycle_guardrails(ctx)

    def review_keyword(
        self,
        evaluation: ProductEvaluation,
        role: KeywordRole,
        clicks: int,
        acos: Optional[float],
        requested_action: BidAction,
        sale_phase: Optional[SalePhase] = None,
        presale_type: Optional[PresaleType] = None,
    ) -> dict:
        """
        Check one keyword's requested action against its guardrails.

        Returns the action to apply after fallback, the overspend ratio against
        the adjusted target ACOS, and whether the click/overspend evidence
        clears the applied action's thresholds.
        """
        role = parse_enum(KeywordRole, role, KeywordRole.SUPPORT)
        requested = parse_enum(BidAction, requested_action, BidAction.KEEP)
        guardrails = self.guardrails_for(evaluation, role, sale_phase, presale_type)

        applied = fallback_action(requested, guardrails, role)
        overspend_ratio = compute_overspend_ratio(acos, evaluation.acos_adjustment.target_acos)

        threshold_action = THRESHOLD_ACTIONS.get(applied)
        meets_threshold = (
            True if threshold_action is None
            else meets_action_threshold(threshold_action, clicks, overspend_ratio, guardrails)
        )

        self.stats["keywords_reviewed"] += 1
        if applied != requested:
            self.stats["keyword_actions_redirected"] += 1

        return {
            "role": role.value,
            "requested_action": requested.value,
            "applied_action": applied.value,
            "overspend_ratio": overspend_ratio,
            "meets_threshold": meets_threshold,
            "max_down_step_ratio": guardrails.max_down_step_ratio,
            "reason": guardrails.reason,
        }

    def _record(self, evaluation: ProductEvaluation):
        self.stats["products_evaluated"] += 1
        if evaluation.growth is not None and evaluation.growth.is_growing_candidate:
            self.stats["growing_candidates"] += 1
        if evaluation.judgment.state_change_recommended:
            self.stats["stage_changes_recommended"] += 1
        if evaluation.bid_control.stop_bidding:
            self.stats["bid_stops"] += 1
        elif evaluation.bid_control.bid_multiplier_adjustment < 1.0:
            self.stats["bid_reductions"] += 1
        if evaluation.risk.is_at_risk:
            self.stats["at_risk"] += 1

        logger.info(
            f"{evaluation.asin}: zone={evaluation.tacos_context.tacos_zone.value} "
            f"target_acos={evaluation.acos_adjustment.target_acos:.3f} "
            f"stage={evaluation.judgment.current_state.value}->{evaluation.judgment.recommended_state.value} "
            f"risk={evaluation.risk.risk_level.value}",
            extra={"fields": {
                "asin": evaluation.asin,
                "tacos_zone": evaluation.tacos_context.tacos_zone.value,
                "target_acos": evaluation.acos_adjustment.target_acos,
                "bid_control": evaluation.bid_control.as_dict(),
                "risk_level": evaluation.risk.risk_level.value,
                "loss_budget_state": evaluation.loss_budget_state.value,
            }},
        )
