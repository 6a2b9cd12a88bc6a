from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from typing import Optional, List, Dict, Any, Union
import logging

from services.exceptions import OracleResponseError

logger = logging.getLogger(__name__)

# ============ AUTH SCHEMAS ============
class AuthenticateRequest(BaseModel):
    token: str


class AuthenticateResponse(BaseModel):
    isValidLink: bool
    apiToken: str
    customerId: str


# ============ QUESTIONNAIRE SCHEMAS ============
class SpendCategory(BaseModel):
    categoryName: str
    categoryAmount: Optional[float] = None
    categoryScore: Optional[float] = None
    subCategory: List[str] = Field(default_factory=list)


class QuestionnaireCreate(BaseModel):
    customerId: Optional[str] = None
    spendCategory: List[SpendCategory] = Field(default_factory=list)
    hasCreditCard: Optional[bool] = None
    creditLimit: Optional[float] = None
    incomeRange: Optional[str] = None


class QuestionnaireResponse(BaseModel):
    message: str
    id: str


# ============ RECOMMENDATION SCHEMAS ============
class RecommendationRequest(BaseModel):
    customerId: Optional[str] = None
    cardName: Optional[List[str]] = None
    preferences: Optional[str] = None
    spendingPattern: Optional[str] = None

    @field_validator("cardName", mode="before")
    @classmethod
    def wrap_single_card_name(cls, value):
        if isinstance(value, str):
            return [value] if value.strip() else None
        return value


class RecommendationItem(BaseModel):
    rank: Optional[int] = None
    cardName: str
    totalReturn: float
    currentReturn: float = 0.0
    returnBreakup: Optional[Dict[str, float]] = None
    eligibilityCriteria: Optional[Dict[str, Any]] = None
    rewardSummary: Optional[List[Dict[str, Any]]] = None
    feeStructure: Optional[Dict[str, Any]] = None
    benefits: Optional[List[Dict[str, Any]]] = None


# ============ CRAWLER SCHEMAS ============
class AnalyzeDirectoryRequest(BaseModel):
    directoryPath: str


class SaveResultsRequest(BaseModel):
    results: List[Optional[Dict[str, Any]]]
    outputPath: str


class SaveResultsResponse(BaseModel):
    success: bool
    message: str
    totalRecords: int


# ============ ORACLE PAYLOADS ============
# Language-model answers are decoded here before anything else touches them.
# Decoders reject malformed payloads with OracleResponseError.

class _OraclePayload(BaseModel):
    model_config = ConfigDict(extra="allow")


class BasicFeaturesPayload(_OraclePayload):
    credit_limit: Optional[float] = None
    available_credit: Optional[float] = None
    cash_limit: Optional[float] = None
    available_cash: Optional[float] = None
    credit_utilization_ratio: Optional[float] = None
    total_amount_due: Optional[float] = None
    minimum_amount_due: Optional[float] = None
    reward_points: Optional[float] = None
    bank_name: Optional[str] = None
    card_type: Optional[str] = None
    statement_date: Optional[str] = None
    payment_due_date: Optional[str] = None


class TransactionMetricsPayload(_OraclePayload):
    transaction_count: Optional[int] = None
    total_spend: Optional[float] = None
    average_transaction_amount: Optional[float] = None
    largest_transaction: Optional[float] = None
    smallest_transaction: Optional[float] = None


class CategoryDetailPayload(_OraclePayload):
    amount: Optional[float] = None
    percentage: Optional[float] = None
    count: Optional[int] = None
    brands: Optional[List[str]] = None


class TransactionPayload(_OraclePayload):
    date: Optional[str] = None
    merchant: Optional[str] = None
    amount: Optional[float] = None
    category: Optional[str] = None


class UserPersonaIndicatorsPayload(_OraclePayload):
    high_spender: Optional[bool] = None
    reward_optimizer: Optional[bool] = None
    digital_native: Optional[bool] = None
    food_enthusiast: Optional[bool] = None
    travel_lover: Optional[bool] = None
    shopper: Optional[bool] = None
    entertainment_seeker: Optional[bool] = None
    health_conscious: Optional[bool] = None
    family_oriented: Optional[bool] = None
    tech_savvy: Optional[bool] = None


class FinancialBehaviorPayload(_OraclePayload):
    utilization_level: Optional[str] = None
    payment_behavior: Optional[str] = None
    spending_pattern: Optional[str] = None


class StatementAnalysisPayload(_OraclePayload):
    basic_features: Optional[BasicFeaturesPayload] = None
    transaction_metrics: Optional[TransactionMetricsPayload] = None
    category_breakdown: Optional[Dict[str, CategoryDetailPayload]] = None
    transactions: Optional[List[TransactionPayload]] = None
    top_categories: Optional[List[str]] = None
    user_persona_indicators: Optional[UserPersonaIndicatorsPayload] = None
    financial_behavior: Optional[FinancialBehaviorPayload] = None


class RankedCardPayload(_OraclePayload):
    rank: Optional[int] = None
    cardName: str
    totalReturn: float
    currentReturn: Optional[float] = None
    returnBreakup: Optional[Dict[str, float]] = None


class RankedCardsPayload(_OraclePayload):
    topRecommendations: List[RankedCardPayload]


class CurrentCardScorePayload(_OraclePayload):
    cardName: Optional[str] = None
    totalReturn: Optional[float] = None


class CurrentCardScoresPayload(_OraclePayload):
    topRecommendations: List[CurrentCardScorePayload] = Field(default_factory=list)


class RewardStructurePayload(_OraclePayload):
    valueForCalculation: Optional[Union[float, str]] = None
    notes: Optional[str] = None


class RewardCategoryPayload(_OraclePayload):
    rewardCategory: Optional[str] = None
    rewardStructures: List[RewardStructurePayload] = Field(default_factory=list)


class BenefitPayload(_OraclePayload):
    title: Optional[str] = None


class CatalogExtractionPayload(_OraclePayload):
    cardName: str
    image: Optional[str] = None
    feeStructure: Optional[Dict[str, Any]] = None
    eligibilityCriteria: Optional[Dict[str, Any]] = None
    rewardSummary: Optional[List[RewardCategoryPayload]] = None
    benefits: Optional[List[BenefitPayload]] = None


def _validate(model, data: Any, label: str):
    if not isinstance(data, dict):
        raise OracleResponseError(f"Expected a JSON object for {label}, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error(f"Rejected {label} payload: {e.error_count()} validation error(s)")
        raise OracleResponseError(f"Malformed {label} payload: {e.errors()[0]['msg']}")


def decode_statement_analysis(data: Any) -> Dict[str, Any]:
    """
    Decode the statement feature-extraction answer.

    Sections may be missing (the normalizer warns about those), but any
    section that is present must have the expected shape.
    """
    payload = _validate(StatementAnalysisPayload, data, "statement analysis")
    return payload.model_dump(exclude_none=True)


def decode_ranked_cards(data: Any) -> List[Dict[str, Any]]:
    """Decode the candidate-pool ranking answer into ordered card dicts."""
    payload = _validate(RankedCardsPayload, data, "card ranking")
    return [card.model_dump() for card in payload.topRecommendations]


def decode_current_card_total(data: Any) -> Optional[float]:
    """
    Decode the current-card scoring answer into a summed monthly return.

    Returns None when the answer is well formed but carries no numeric totals.
    """
    payload = _validate(CurrentCardScoresPayload, data, "current card scoring")
    totals = [card.totalReturn for card in payload.topRecommendations if card.totalReturn is not None]
    if not totals:
        return None
    return float(sum(totals))


def decode_catalog_extraction(data: Any) -> Dict[str, Any]:
    payload = _validate(CatalogExtractionPayload, data, "card catalog extraction")
    return payload.model_dump(exclude_none=True)
