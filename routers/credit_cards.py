from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from sqlalchemy.orm import Session
from typing import List, Optional, Dict, Any
import logging

from database import get_db
from schemas import (
    AuthenticateRequest,
    AuthenticateResponse,
    QuestionnaireCreate,
    QuestionnaireResponse,
    RecommendationRequest,
    RecommendationItem,
)
from routers.utils import (
    AUTH_TOKEN,
    remove_stored_uploads,
    save_upload_locally,
    validate_pdf_upload,
    verify_api_token,
)
from services.credit_card_service import CreditCardService
from services.document_pipeline import StatementFile, StatementPipeline, validate_batch_size
from services.gemini_service import GeminiService, get_gemini_service
from services.recommendation_service import RecommendationService

router = APIRouter()
logger = logging.getLogger(__name__)

CUSTOMER_ID_REQUIRED = "customerId is required. Please include the customerId from the authentication response."


# ========== AUTHENTICATION ==========

@router.post("/authenticate", response_model=AuthenticateResponse)
def authenticate(payload: AuthenticateRequest, db: Session = Depends(get_db)):
    """Register a visitor from an invitation link and hand out the API token"""
    user = CreditCardService(db).authenticate(payload.token)
    return AuthenticateResponse(
        isValidLink=True,
        apiToken=AUTH_TOKEN or "",
        customerId=user.customer_id,
    )


# ========== STATEMENT UPLOAD ==========

@router.post("/recommendation")
async def upload_statements(
    files: Optional[List[UploadFile]] = File(None),
    customerId: Optional[str] = Form(None),
    cardBank: Optional[str] = Form(None),
    cardName: Optional[str] = Form(None),
    _token: str = Depends(verify_api_token),
    db: Session = Depends(get_db),
    gemini_service: GeminiService = Depends(get_gemini_service),
) -> Dict[str, Any]:
    """
    Upload 1-5 credit card statement PDFs and return the cleaned analysis.

    The analysis is saved on a best-effort basis: a storage failure is logged
    and the caller still receives the analysis.
    """
    if not customerId:
        raise HTTPException(status_code=400, detail=CUSTOMER_ID_REQUIRED)

    files = files or []
    validate_batch_size(len(files))
    CreditCardService(db).get_user(customerId)

    for file in files:
        validate_pdf_upload(file)

    statements = []
    stored_paths = []
    try:
        for file in files:
            contents = await file.read()
            stored_path = save_upload_locally(contents, file.filename, customerId) if contents else None
            if stored_path:
                stored_paths.append(stored_path)
            statements.append(StatementFile(
                filename=file.filename or "uploaded_file",
                content=contents,
                stored_path=stored_path,
            ))

        logger.info(f"Received {len(statements)} statement(s) for customer {customerId}")
        pipeline = StatementPipeline(db, gemini_service)
        computed, outcome = await pipeline.analyze_statements(
            statements, customerId, card_bank=cardBank, card_name=cardName
        )
    except Exception:
        remove_stored_uploads(stored_paths)
        raise

    if outcome.upload_id is None:
        remove_stored_uploads(stored_paths)
    if not outcome.saved:
        logger.warning(f"Returning unsaved analysis for {customerId}: {outcome.error}")
    return computed.analysis


# ========== QUESTIONNAIRE ==========

@router.post("/questionnaire", response_model=QuestionnaireResponse)
def submit_questionnaire(payload: QuestionnaireCreate, db: Session = Depends(get_db)):
    if not payload.customerId:
        raise HTTPException(status_code=400, detail=CUSTOMER_ID_REQUIRED)

    questionnaire = CreditCardService(db).submit_questionnaire(
        payload.customerId,
        [category.model_dump() for category in payload.spendCategory],
        has_credit_card=payload.hasCreditCard,
        credit_limit=payload.creditLimit,
        income_range=payload.incomeRange,
    )
    return QuestionnaireResponse(
        message="questionnaire submitted successfully",
        id=str(questionnaire.questionnaire_id),
    )


# ========== RECOMMENDATIONS ==========

@router.post("/get-recommendations", response_model=List[RecommendationItem])
async def get_recommendations(
    payload: RecommendationRequest,
    db: Session = Depends(get_db),
    gemini_service: GeminiService = Depends(get_gemini_service),
):
    """Rank catalog cards against the customer's latest statement analysis"""
    if not payload.customerId:
        raise HTTPException(status_code=400, detail=CUSTOMER_ID_REQUIRED)

    service = RecommendationService(db, gemini_service)
    return await service.get_recommendations(
        payload.customerId,
        held_card_names=payload.cardName,
        preferences=payload.preferences,
        spending_pattern=payload.spendingPattern,
    )
