"""
Response Normalizer
Cleans oracle analysis output before it is returned or persisted
"""
import os
import copy
import logging
from typing import Dict, Any, List
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

TOP_CATEGORIES_LIMIT = int(os.getenv("TOP_CATEGORIES_LIMIT", "5"))
RANKING_TOP_CATEGORIES_LIMIT = 3
REWARD_CATEGORIES_LIMIT = 5

REQUIRED_SECTIONS = ("basic_features", "transaction_metrics", "category_breakdown")
CATALOG_SECTIONS = ("cardName", "feeStructure", "eligibilityCriteria", "rewardSummary", "benefits")


def _as_number(value: Any) -> float:
    if value is None:
        return 0.0
    return float(value)


def rank_categories(category_breakdown: Dict[str, Dict[str, Any]], limit: int) -> List[str]:
    """Category names by descending amount; ties keep their original order."""
    ordered = sorted(
        category_breakdown.keys(),
        key=lambda name: _as_number(category_breakdown[name].get("amount")),
        reverse=True,
    )
    return ordered[:limit]


def validate_and_clean_response(data: Dict[str, Any], top_n: int = TOP_CATEGORIES_LIMIT) -> Dict[str, Any]:
    """
    Validate and clean a statement analysis.

    Drops categories whose amount and count are both zero or missing, then
    re-derives top_categories from what remains. Missing top-level sections
    are only logged. Never raises: on any internal error the input is
    returned unchanged.

    Args:
        data: Analysis object as decoded from the oracle
        top_n: Maximum length of top_categories

    Returns:
        A cleaned copy of the analysis
    """
    try:
        for section in REQUIRED_SECTIONS:
            if not data.get(section):
                logger.warning(f"Analysis is missing {section}")

        cleaned = copy.deepcopy(data)
        breakdown = cleaned.get("category_breakdown")
        if isinstance(breakdown, dict):
            kept = {
                name: detail
                for name, detail in breakdown.items()
                if _as_number(detail.get("amount")) != 0 or _as_number(detail.get("count")) != 0
            }
            removed = len(breakdown) - len(kept)
            if removed:
                logger.info(f"Removed {removed} empty categories from breakdown")
            cleaned["category_breakdown"] = kept
            cleaned["top_categories"] = rank_categories(kept, top_n)

        return cleaned
    except Exception as e:
        logger.error(f"Error validating analysis, returning it unchanged: {e}")
        return data


def validate_and_clean_catalog_response(data: Dict[str, Any]) -> Dict[str, Any]:
    """Clean a card catalog extraction and derive its reward category names."""
    try:
        for section in CATALOG_SECTIONS:
            if not data.get(section):
                logger.warning(f"Card catalog extraction is missing {section}")

        cleaned = copy.deepcopy(data)
        reward_summary = cleaned.get("rewardSummary") or []
        cleaned["rewardCategories"] = [
            reward.get("rewardCategory") or "Unknown"
            for reward in reward_summary[:REWARD_CATEGORIES_LIMIT]
        ]
        return cleaned
    except Exception as e:
        logger.error(f"Error validating card catalog extraction, returning it unchanged: {e}")
        return data
