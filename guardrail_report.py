"""
Guardrail recommendation report
Evaluates a product snapshot file and logs per-product and per-keyword recommendations

Snapshot format (JSON list):
    [{"config": {...ProductConfig...}, "current_tacos": 0.31,
      "growth": {...}, "orange_zone_months": 0, "red_zone_months": 0,
      "keywords": [{"keyword": "...", "role": "CORE", "clicks": 120,
                    "acos": 0.42, "requested_action": "STOP"}]}]
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bid_guardrails.config import settings
from bid_guardrails.evaluator import ProductEvaluator
from bid_guardrails.logger import get_logger
from bid_guardrails.models import (
    GrowthAssessmentData,
    PresaleType,
    ProductConfig,
    SalePhase,
    local_now,
    parse_enum,
)

logger = get_logger(__name__)


class KeywordSnapshot(BaseModel):
    model_config = ConfigDict(extra="ignore")

    keyword: str = ""
    role: Optional[str] = None
    clicks: int = Field(default=0, ge=0)
    acos: Optional[float] = Field(default=None, ge=0)
    requested_action: Optional[str] = None


class SnapshotItem(BaseModel):
    """One product entry of the snapshot file."""

    model_config = ConfigDict(extra="ignore")

    config: ProductConfig
    current_tacos: float = Field(default=0.0, ge=0)
    growth: Optional[Dict[str, Any]] = None
    orange_zone_months: int = Field(default=0, ge=0)
    red_zone_months: int = Field(default=0, ge=0)
    keywords: List[KeywordSnapshot] = Field(default_factory=list)


class GuardrailReport:
    def __init__(self, input_path: str, sale_phase: str = None, presale_type: str = None):
        self.input_path = input_path
        self.sale_phase = parse_enum(SalePhase, sale_phase or settings.default_sale_phase, SalePhase.NORMAL)
        self.presale_type = parse_enum(PresaleType, presale_type or settings.default_presale_type, PresaleType.NONE)
        self.evaluator = ProductEvaluator()

        self.stats = {
            "products_loaded": 0,
            "products_evaluated": 0,
            "keywords_reviewed": 0,
            "actions_redirected": 0,
            "stage_changes": 0,
            "bid_stops": 0,
            "errors": 0,
        }

    def run(self) -> List[dict]:
        """Main report workflow"""
        logger.info("=" * 60)
        logger.info("Starting Guardrail Report")
        logger.info(f"Timestamp: {local_now().isoformat()}")
        logger.info(f"Sale phase: {self.sale_phase.value} / presale: {self.presale_type.value}")
        logger.info("=" * 60)

        # Step 1: Load snapshot
        logger.info("Step 1: Loading snapshot")
        try:
            products = self._load_snapshot()
        except (OSError, ValueError) as e:
            logger.error(f"Cannot read snapshot {self.input_path}: {e}", exc_info=True)
            self.stats["errors"] += 1
            sys.exit(1)
        self.stats["products_loaded"] = len(products)
        logger.info(f"Loaded {len(products)} products")

        if not products:
            logger.warning("No products in snapshot")
            return []

        # Step 2: Evaluate
        logger.info("Step 2: Evaluating products")
        results = []
        for item in products:
            result = self._evaluate_item(item)
            if result is not None:
                results.append(result)

        # Step 3: Summary
        self._print_summary()
        logger.info("Guardrail Report Completed")
        return results

    def _load_snapshot(self) -> list:
        with open(self.input_path, encoding="utf-8") as f:
            products = json.load(f)
        if not isinstance(products, list):
            raise ValueError("snapshot must be a JSON list of products")
        return products

    def _evaluate_item(self, item: Any) -> Optional[dict]:
        asin = "<unknown>"
        if isinstance(item, dict) and isinstance(item.get("config"), dict):
            asin = item["config"].get("asin", asin)
        try:
            snapshot = SnapshotItem.model_validate(item)
            config = snapshot.config
            growth = None
            if snapshot.growth is not None:
                growth = GrowthAssessmentData.model_validate({**snapshot.growth, "asin": config.asin})
        except ValidationError as e:
            logger.error(
                f"Invalid snapshot item for {asin}: {e.error_count()} errors",
                extra={"fields": {"asin": asin, "errors": e.errors(include_url=False)}},
            )
            self.stats["errors"] += 1
            return None

        evaluation = self.evaluator.evaluate(
            config,
            current_tacos=snapshot.current_tacos,
            growth_data=growth,
            orange_zone_months=snapshot.orange_zone_months,
            red_zone_months=snapshot.red_zone_months,
        )
        self.stats["products_evaluated"] += 1
        if evaluation.judgment.state_change_recommended:
            self.stats["stage_changes"] += 1
        if evaluation.bid_control.stop_bidding:
            self.stats["bid_stops"] += 1

        for warning in evaluation.judgment.warnings:
            logger.warning(f"{config.asin}: {warning}")

        keyword_reviews = []
        for kw in snapshot.keywords:
            review = self.evaluator.review_keyword(
                evaluation,
                role=kw.role,
                clicks=kw.clicks,
                acos=kw.acos,
                requested_action=kw.requested_action,
                sale_phase=self.sale_phase,
                presale_type=self.presale_type,
            )
            review["keyword"] = kw.keyword
            keyword_reviews.append(review)

            self.stats["keywords_reviewed"] += 1
            if review["applied_action"] != review["requested_action"]:
                self.stats["actions_redirected"] += 1
                logger.info(
                    f"{config.asin} [{review['keyword']}] {review['role']}: "
                    f"{review['requested_action']} -> {review['applied_action']}",
                    extra={"fields": review},
                )

        return {
            "asin": config.asin,
            "evaluation": evaluation.as_dict(),
            "keywords": keyword_reviews,
        }

    def _print_summary(self):
        """Print report summary statistics"""
        logger.info("=" * 60)
        logger.info("REPORT SUMMARY")
        logger.info("=" * 60)
        logger.info(f"Products Loaded:     {self.stats['products_loaded']}")
        logger.info(f"Products Evaluated:  {self.stats['products_evaluated']}")
        logger.info(f"Stage Changes:       {self.stats['stage_changes']}")
        logger.info(f"Bid Stops:           {self.stats['bid_stops']}")
        logger.info(f"Keywords Reviewed:   {self.stats['keywords_reviewed']}")
        logger.info(f"Actions Redirected:  {self.stats['actions_redirected']}")
        logger.info(f"Errors:              {self.stats['errors']}")
        logger.info("=" * 60)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Evaluate a product snapshot against LTV bid guardrails")
    parser.add_argument("--input", required=True, help="Path to the JSON product snapshot")
    parser.add_argument("--sale-phase", choices=[p.value for p in SalePhase], help="Sale calendar phase")
    parser.add_argument("--presale-type", choices=[p.value for p in PresaleType], help="Pre-sale buying behaviour")
    args = parser.parse_args(argv)

    report = GuardrailReport(args.input, args.sale_phase, args.presale_type)
    report.run()


if __name__ == "__main__":
    main()
