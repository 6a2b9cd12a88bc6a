"""
Entity store operations for users, uploads, questionnaires,
statement analyses and the card catalog
"""
import uuid
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

import models
from services.exceptions import PreconditionError, PersistenceError

logger = logging.getLogger(__name__)

HELD_CARD_LOOKUP_LIMIT = 50

_BASIC_FEATURE_KEYS = {
    "credit_limit": "creditLimit",
    "available_credit": "availableCredit",
    "cash_limit": "cashLimit",
    "available_cash": "availableCash",
    "credit_utilization_ratio": "creditUtilizationRatio",
    "total_amount_due": "totalAmountDue",
    "minimum_amount_due": "minimumAmountDue",
    "reward_points": "rewardPoints",
    "bank_name": "bankName",
    "card_type": "cardType",
    "statement_date": "statementDate",
    "payment_due_date": "paymentDueDate",
}

_TRANSACTION_METRIC_KEYS = {
    "transaction_count": "transactionCount",
    "total_spend": "totalSpend",
    "average_transaction_amount": "averageTransactionAmount",
    "largest_transaction": "largestTransaction",
    "smallest_transaction": "smallestTransaction",
}

_PERSONA_KEYS = {
    "high_spender": "highSpender",
    "reward_optimizer": "rewardOptimizer",
    "digital_native": "digitalNative",
    "food_enthusiast": "foodEnthusiast",
    "travel_lover": "travelLover",
    "shopper": "shopper",
    "entertainment_seeker": "entertainmentSeeker",
    "health_conscious": "healthConscious",
    "family_oriented": "familyOriented",
    "tech_savvy": "techSavvy",
}

_BEHAVIOR_KEYS = {
    "utilization_level": "utilizationLevel",
    "payment_behavior": "paymentBehavior",
    "spending_pattern": "spendingPattern",
}


def _rename(section: Optional[Dict[str, Any]], mapping: Dict[str, str]) -> Dict[str, Any]:
    if not section:
        return {}
    return {camel: section[snake] for snake, camel in mapping.items() if section.get(snake) is not None}


def shape_statement_analysis(analysis: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a cleaned analysis onto StatementAnalysis column values.

    Raises:
        PersistenceError: If basic features or transaction metrics are missing
    """
    basic_features = analysis.get("basic_features")
    if not basic_features or basic_features.get("credit_limit") is None:
        raise PersistenceError("Analysis has no basic features with a credit limit")
    transaction_metrics = analysis.get("transaction_metrics")
    if not transaction_metrics:
        raise PersistenceError("Analysis has no transaction metrics")

    category_breakdown = {}
    for name, detail in (analysis.get("category_breakdown") or {}).items():
        entry = {
            "amount": detail.get("amount") or 0,
            "percentage": detail.get("percentage") or 0,
            "count": detail.get("count") or 0,
        }
        if detail.get("brands"):
            entry["brands"] = list(detail["brands"])
        category_breakdown[name] = entry

    persona = _rename(analysis.get("user_persona_indicators"), _PERSONA_KEYS)
    behavior = _rename(analysis.get("financial_behavior"), _BEHAVIOR_KEYS)

    return {
        "basic_features": _rename(basic_features, _BASIC_FEATURE_KEYS),
        "transaction_metrics": _rename(transaction_metrics, _TRANSACTION_METRIC_KEYS),
        "category_breakdown": category_breakdown,
        "transactions": analysis.get("transactions"),
        "top_categories": list(analysis.get("top_categories") or []),
        "user_persona_indicators": persona or None,
        "financial_behavior": behavior or None,
    }


class CreditCardService:
    """Reads and writes the entities behind the recommendation flow"""

    def __init__(self, db: Session):
        self.db = db

    # ========== USERS ==========

    def authenticate(self, token: str) -> models.User:
        """Create a user with a fresh customer id for an invitation link"""
        user = models.User(customer_id=str(uuid.uuid4()), link_token=token)
        self._save(user, "user")
        logger.info(f"Created user with customerId {user.customer_id}")
        return user

    def get_user(self, customer_id: str) -> models.User:
        user = self.db.query(models.User).filter(models.User.customer_id == customer_id).first()
        if not user:
            raise PreconditionError(f"User with customerId {customer_id} not found", status_code=404)
        return user

    # ========== UPLOADS & ANALYSES ==========

    def create_document_upload(
        self,
        user: models.User,
        file_paths: List[str],
        card_bank: Optional[str] = None,
        card_name: Optional[str] = None,
        oracle_response: Optional[Dict[str, Any]] = None,
    ) -> models.DocumentUpload:
        upload = models.DocumentUpload(
            user_id=user.user_id,
            card_bank=card_bank or "Unknown",
            card_name=card_name or "Unknown",
            file_paths=list(file_paths),
            oracle_response=oracle_response or {"status": "processed"},
        )
        self._save(upload, "document upload")
        logger.info(f"Document upload {upload.upload_id} created with {len(file_paths)} file(s)")
        return upload

    def save_statement_analysis(
        self,
        analysis: Dict[str, Any],
        upload_id: int,
        customer_id: str,
    ) -> models.StatementAnalysis:
        """
        Persist a cleaned analysis against an existing user and upload.

        Raises:
            PreconditionError: If the user or upload does not exist
            PersistenceError: If the analysis cannot be shaped or written
        """
        user = self.get_user(customer_id)
        upload = self.db.query(models.DocumentUpload).filter(
            models.DocumentUpload.upload_id == upload_id,
            models.DocumentUpload.user_id == user.user_id
        ).first()
        if not upload:
            raise PreconditionError(f"Document upload {upload_id} not found for customer {customer_id}", status_code=404)

        record = models.StatementAnalysis(
            user_id=user.user_id,
            upload_id=upload.upload_id,
            **shape_statement_analysis(analysis)
        )
        self._save(record, "statement analysis")
        return record

    def get_latest_statement_analysis(self, user: models.User) -> Optional[models.StatementAnalysis]:
        return self.db.query(models.StatementAnalysis).filter(
            models.StatementAnalysis.user_id == user.user_id
        ).order_by(
            models.StatementAnalysis.analyzed_at.desc(),
            models.StatementAnalysis.analysis_id.desc()
        ).first()

    # ========== QUESTIONNAIRES ==========

    def submit_questionnaire(
        self,
        customer_id: str,
        spend_category: List[Dict[str, Any]],
        has_credit_card: Optional[bool] = None,
        credit_limit: Optional[float] = None,
        income_range: Optional[str] = None,
    ) -> models.Questionnaire:
        user = self.get_user(customer_id)
        questionnaire = models.Questionnaire(
            user_id=user.user_id,
            spend_category=spend_category,
            has_credit_card=has_credit_card,
            credit_limit=credit_limit,
            income_range=income_range,
        )
        self._save(questionnaire, "questionnaire")
        logger.info(f"Questionnaire {questionnaire.questionnaire_id} submitted for {customer_id}")
        return questionnaire

    # ========== CARD CATALOG ==========

    def get_active_catalog_cards(self) -> List[models.CardCatalogEntry]:
        return self.db.query(models.CardCatalogEntry).filter(
            models.CardCatalogEntry.is_active == True
        ).order_by(models.CardCatalogEntry.card_id).all()

    def get_catalog_cards_by_name(self, card_names: List[str]) -> List[models.CardCatalogEntry]:
        if not card_names:
            return []
        return self.db.query(models.CardCatalogEntry).filter(
            models.CardCatalogEntry.card_name.in_(card_names)
        ).limit(HELD_CARD_LOOKUP_LIMIT).all()

    def upsert_catalog_entry(self, extraction: Dict[str, Any]) -> models.CardCatalogEntry:
        """Insert or refresh a catalog entry keyed by card name"""
        card_name = extraction["cardName"]
        entry = self.db.query(models.CardCatalogEntry).filter(
            models.CardCatalogEntry.card_name == card_name
        ).first()
        if entry is None:
            entry = models.CardCatalogEntry(card_name=card_name)

        entry.bank_name = extraction.get("bankName") or entry.bank_name
        entry.image = extraction.get("image")
        entry.fee_structure = extraction.get("feeStructure") or {}
        entry.eligibility_criteria = extraction.get("eligibilityCriteria") or {}
        entry.reward_summary = extraction.get("rewardSummary") or []
        entry.benefits = extraction.get("benefits") or []
        entry.is_active = True
        self._save(entry, "card catalog entry")
        return entry

    def _save(self, instance, label: str):
        try:
            self.db.add(instance)
            self.db.commit()
            self.db.refresh(instance)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save {label}: {e}")
            raise PersistenceError(f"Failed to save {label}: {str(e)}")
