from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional, Dict, Any
import logging

from database import get_db
from schemas import AnalyzeDirectoryRequest, SaveResultsRequest, SaveResultsResponse
from services.catalog_crawler import CatalogCrawler, save_results_to_json
from services.gemini_service import GeminiService, get_gemini_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/analyze-directory", response_model=List[Optional[Dict[str, Any]]])
async def analyze_directory(
    payload: AnalyzeDirectoryRequest,
    db: Session = Depends(get_db),
    gemini_service: GeminiService = Depends(get_gemini_service),
):
    """Analyze every card PDF in a directory and store the results in the catalog"""
    logger.info(f"Crawling card PDFs in {payload.directoryPath}")
    crawler = CatalogCrawler(db, gemini_service)
    return await crawler.process_directory(payload.directoryPath)


@router.post("/save-results", response_model=SaveResultsResponse)
def save_results(payload: SaveResultsRequest):
    return save_results_to_json(payload.results, payload.outputPath)
