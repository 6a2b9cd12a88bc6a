"""
Card Recommendation Service
Scores catalog cards against a customer's latest statement analysis
and compares them with the cards the customer already holds
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

import models
from schemas import decode_current_card_total, decode_ranked_cards
from services.credit_card_service import CreditCardService
from services.exceptions import (
    CardMatchError,
    OracleTimeoutError,
    PreconditionError,
    RecommendationError,
)
from services.gemini_service import GeminiService
from services.prompts import build_recommendation_prompt
from services.response_normalizer import RANKING_TOP_CATEGORIES_LIMIT, rank_categories

logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 3


def current_return_divisor(queried_card_names: Sequence[str], matched_cards: Sequence[Any]) -> int:
    """
    Number the current-card total is averaged over.

    Uses the held cards the customer asked about, not the catalog matches,
    so an unknown held card still lowers the average.
    """
    return len(queried_card_names)


def average_current_return(
    total: Optional[float],
    queried_card_names: Sequence[str],
    matched_cards: Sequence[Any],
) -> float:
    """Per-card monthly return of the held cards, rounded to 2 decimals"""
    if total is None:
        return 0.0
    divisor = current_return_divisor(queried_card_names, matched_cards)
    if divisor <= 0:
        return 0.0
    return round(total / divisor, 2)


def catalog_card_payload(entry: models.CardCatalogEntry) -> Dict[str, Any]:
    return {
        "cardName": entry.card_name,
        "bankName": entry.bank_name,
        "feeStructure": entry.fee_structure,
        "eligibilityCriteria": entry.eligibility_criteria,
        "rewardSummary": entry.reward_summary,
        "benefits": entry.benefits,
    }


def build_user_profile(
    analysis: models.StatementAnalysis,
    preferences: Optional[str] = None,
    spending_pattern: Optional[str] = None,
) -> Dict[str, Any]:
    """Spending profile sent to the oracle, limited to the top ranking categories"""
    category_breakdown = analysis.category_breakdown or {}
    if category_breakdown:
        top_categories = rank_categories(category_breakdown, RANKING_TOP_CATEGORIES_LIMIT)
    else:
        top_categories = list(analysis.top_categories or [])[:RANKING_TOP_CATEGORIES_LIMIT]

    profile = {
        "basicFeatures": analysis.basic_features,
        "transactionMetrics": analysis.transaction_metrics,
        "categoryBreakdown": category_breakdown,
        "topCategories": top_categories,
        "userPersonaIndicators": analysis.user_persona_indicators,
        "financialBehavior": analysis.financial_behavior,
        "preferences": preferences,
        "spendingPattern": spending_pattern,
    }
    return {key: value for key, value in profile.items() if value is not None}


def merge_catalog_metadata(
    ranked_cards: List[Dict[str, Any]],
    catalog: Dict[str, models.CardCatalogEntry],
    current_return: float,
) -> List[Dict[str, Any]]:
    """Attach catalog fields and the current-card baseline to each ranked card"""
    merged = []
    for card in ranked_cards[:MAX_RECOMMENDATIONS]:
        entry = catalog.get(card["cardName"])
        if entry is None:
            logger.warning(f"No catalog entry matches recommended card '{card['cardName']}'")
        item = dict(card)
        item["eligibilityCriteria"] = entry.eligibility_criteria if entry else None
        item["rewardSummary"] = entry.reward_summary if entry else None
        item["feeStructure"] = entry.fee_structure if entry else None
        item["benefits"] = entry.benefits if entry else None
        item["currentReturn"] = current_return
        merged.append(item)
    return merged


class RecommendationService:
    """Ranks catalog cards for a customer"""

    def __init__(self, db: Session, gemini_service: GeminiService):
        self.db = db
        self.gemini_service = gemini_service
        self.store = CreditCardService(db)

    async def _rank_candidates(
        self, profile: Dict[str, Any], candidates: List[models.CardCatalogEntry]
    ) -> List[Dict[str, Any]]:
        prompt = build_recommendation_prompt(
            profile, [catalog_card_payload(entry) for entry in candidates], MAX_RECOMMENDATIONS
        )
        raw = await self.gemini_service.generate_json(prompt)
        return decode_ranked_cards(raw)

    async def _score_current_cards(
        self, profile: Dict[str, Any], held_cards: List[models.CardCatalogEntry]
    ) -> Optional[float]:
        prompt = build_recommendation_prompt(
            profile, [catalog_card_payload(entry) for entry in held_cards], len(held_cards)
        )
        raw = await self.gemini_service.generate_json(prompt)
        return decode_current_card_total(raw)

    async def score_cards(
        self,
        profile: Dict[str, Any],
        candidates: List[models.CardCatalogEntry],
        held_cards: List[models.CardCatalogEntry],
    ) -> Tuple[List[Dict[str, Any]], Optional[float]]:
        """
        Score the candidate pool and, when there is one, the current-card pool.

        Both oracle calls run concurrently and either may finish first.
        If one fails, the other is cancelled before the error propagates.
        """
        if not held_cards:
            return await self._rank_candidates(profile, candidates), None

        tasks = [
            asyncio.ensure_future(self._rank_candidates(profile, candidates)),
            asyncio.ensure_future(self._score_current_cards(profile, held_cards)),
        ]
        try:
            ranked, current_total = await asyncio.gather(*tasks)
        except Exception:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return ranked, current_total

    async def get_recommendations(
        self,
        customer_id: str,
        held_card_names: Optional[List[str]] = None,
        preferences: Optional[str] = None,
        spending_pattern: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Recommend up to three cards for a customer.

        Args:
            customer_id: Customer id from the authentication response
            held_card_names: Names of cards the customer already holds
            preferences: Free-text preferences passed to the oracle
            spending_pattern: Free-text spending description passed to the oracle

        Returns:
            Ranked cards with catalog metadata and a currentReturn baseline

        Raises:
            PreconditionError: If the customer is unknown or has no statement analysis
            RecommendationError: If scoring or catalog lookup fails
        """
        if not customer_id:
            raise PreconditionError(
                "customerId is required. Please include the customerId from the authentication response."
            )
        held_card_names = [name for name in (held_card_names or []) if name]

        try:
            user = self.store.get_user(customer_id)
            analysis = self.store.get_latest_statement_analysis(user)
        except SQLAlchemyError as e:
            logger.error(f"Statement analysis lookup failed for {customer_id}: {e}")
            raise RecommendationError(f"Failed to load statement analysis: {str(e)}")
        if analysis is None:
            raise PreconditionError(
                f"No statement analysis found for customer {customer_id}. Upload a statement first.",
                status_code=404,
            )

        try:
            candidates = self.store.get_active_catalog_cards()
            held_cards = self.store.get_catalog_cards_by_name(held_card_names)
        except SQLAlchemyError as e:
            logger.error(f"Card catalog lookup failed: {e}")
            raise RecommendationError(f"Failed to load card catalog: {str(e)}")

        if not candidates:
            logger.warning("Card catalog has no active cards; nothing to recommend")
            return []

        logger.info(
            f"Scoring {len(candidates)} candidate card(s) and {len(held_cards)} held card(s) "
            f"for customer {customer_id}"
        )
        profile = build_user_profile(analysis, preferences, spending_pattern)
        try:
            ranked, current_total = await self.score_cards(profile, candidates, held_cards)
        except CardMatchError as e:
            logger.error(f"Recommendation scoring failed for {customer_id}: {e.message}")
            status_code = e.status_code if isinstance(e, OracleTimeoutError) else None
            raise RecommendationError(f"Failed to generate recommendations: {e.message}", status_code=status_code)

        current_return = average_current_return(current_total, held_card_names, held_cards)
        catalog = {entry.card_name: entry for entry in held_cards}
        catalog.update({entry.card_name: entry for entry in candidates})
        return merge_catalog_metadata(ranked, catalog, current_return)
