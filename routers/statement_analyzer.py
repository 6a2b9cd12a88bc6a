"""
Single statement analysis without persistence
"""
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any
import logging

from database import get_db
from routers.utils import validate_pdf_upload
from services.document_pipeline import StatementFile, StatementPipeline
from services.gemini_service import GeminiService, get_gemini_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/analyze")
async def analyze_statement(
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    gemini_service: GeminiService = Depends(get_gemini_service),
) -> Dict[str, Any]:
    """Analyze one credit card statement PDF and return the cleaned analysis"""
    if file is None:
        raise HTTPException(status_code=400, detail="No PDF file uploaded")

    validate_pdf_upload(file)
    contents = await file.read()
    logger.info(f"Received file: {file.filename}, size: {len(contents)} bytes")

    pipeline = StatementPipeline(db, gemini_service)
    computed = await pipeline.compute_analysis([
        StatementFile(filename=file.filename or "uploaded_file", content=contents)
    ])
    return computed.analysis
