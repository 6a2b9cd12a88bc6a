"""
Card Catalog Crawler
Analyzes a directory of card-product PDFs in rate-limited batches
and stores each result in the card catalog
"""
import os
import json
import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional
from dotenv import load_dotenv
from sqlalchemy.orm import Session

from schemas import decode_catalog_extraction
from services.credit_card_service import CreditCardService
from services.exceptions import PersistenceError, PreconditionError
from services.gemini_service import GeminiService
from services.prompts import build_catalog_extraction_prompt
from services.response_normalizer import validate_and_clean_catalog_response

load_dotenv()

logger = logging.getLogger(__name__)

CRAWLER_BATCH_SIZE = int(os.getenv("CRAWLER_BATCH_SIZE", "1"))
CRAWLER_BATCH_DELAY_SECONDS = float(os.getenv("CRAWLER_BATCH_DELAY_SECONDS", "2"))


def list_pdf_files(directory_path: str) -> List[Path]:
    """
    PDF files directly inside a directory, sorted by name.

    Raises:
        PreconditionError: If the directory does not exist
    """
    directory = Path(directory_path)
    if not directory.is_dir():
        raise PreconditionError(f"Directory not found: {directory_path}", status_code=404)
    return sorted(
        entry for entry in directory.iterdir()
        if entry.is_file() and entry.suffix.lower() == ".pdf"
    )


def save_results_to_json(results: List[Optional[Dict[str, Any]]], output_path: str) -> Dict[str, Any]:
    """
    Write crawler results as a pretty-printed JSON array.

    Raises:
        PersistenceError: If the file cannot be written
    """
    try:
        output = Path(output_path)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(results, indent=2, ensure_ascii=False), encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to write results to {output_path}: {e}")
        raise PersistenceError(f"Failed to save results: {str(e)}")

    logger.info(f"Saved {len(results)} result(s) to {output_path}")
    return {
        "success": True,
        "message": f"Results saved to {output_path}",
        "totalRecords": len(results),
    }


class CatalogCrawler:
    """Fills the card catalog from card-product PDFs"""

    def __init__(
        self,
        db: Session,
        gemini_service: GeminiService,
        batch_size: int = CRAWLER_BATCH_SIZE,
        batch_delay_seconds: float = CRAWLER_BATCH_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.db = db
        self.gemini_service = gemini_service
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self.sleep = sleep
        self.store = CreditCardService(db)

    async def analyze_pdf_file(self, file_path: Path) -> Dict[str, Any]:
        """Extract, clean and store the catalog entry for one card PDF"""
        logger.info(f"Analyzing card PDF: {file_path.name}")
        pdf_bytes = file_path.read_bytes()
        raw = await self.gemini_service.generate_json(
            build_catalog_extraction_prompt(),
            attachments=[{"mime_type": "application/pdf", "data": pdf_bytes}],
        )
        result = validate_and_clean_catalog_response(decode_catalog_extraction(raw))
        entry = self.store.upsert_catalog_entry(result)
        logger.info(f"Stored catalog entry {entry.card_id} for {result['cardName']}")
        return result

    async def _analyze_or_none(self, file_path: Path) -> Optional[Dict[str, Any]]:
        try:
            return await self.analyze_pdf_file(file_path)
        except Exception as e:
            logger.error(f"Error processing {file_path.name}: {e}")
            return None

    async def process_directory(self, directory_path: str) -> List[Optional[Dict[str, Any]]]:
        """
        Analyze every PDF in a directory, one batch at a time.

        A fixed delay separates consecutive batches. A file that fails yields
        None in its slot instead of stopping the run.

        Raises:
            PreconditionError: If the directory does not exist
        """
        pdf_files = list_pdf_files(directory_path)
        if not pdf_files:
            logger.warning(f"No PDF files found in {directory_path}")
            return []

        logger.info(f"Found {len(pdf_files)} PDF file(s) in {directory_path}")
        results: List[Optional[Dict[str, Any]]] = []
        for start in range(0, len(pdf_files), self.batch_size):
            batch = pdf_files[start:start + self.batch_size]
            batch_results = await asyncio.gather(*(self._analyze_or_none(path) for path in batch))
            results.extend(batch_results)

            if start + self.batch_size < len(pdf_files):
                logger.info(f"Waiting {self.batch_delay_seconds}s before next batch")
                await self.sleep(self.batch_delay_seconds)

        failed = sum(1 for result in results if result is None)
        logger.info(f"Processed {len(results)} file(s), {failed} failed")
        return results
