"""
Statement Document Pipeline
Turns uploaded statement PDFs into a cleaned analysis and records it
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from schemas import decode_statement_analysis
from services.credit_card_service import CreditCardService
from services.exceptions import (
    CardMatchError,
    ExtractionError,
    OracleResponseError,
    PreconditionError,
)
from services.gemini_service import GeminiService
from services.pdf_text import PdfTextError, extract_text_from_pdf
from services.prompts import DOCUMENT_SEPARATOR, build_statement_extraction_prompt
from services.response_normalizer import validate_and_clean_response

logger = logging.getLogger(__name__)

MIN_FILES_PER_BATCH = 1
MAX_FILES_PER_BATCH = 5


class StatementFile(BaseModel):
    filename: str
    content: bytes
    stored_path: Optional[str] = None


class SkippedFile(BaseModel):
    filename: str
    reason: str


class ComputedAnalysis(BaseModel):
    """The user-facing result of a batch"""
    analysis: Dict[str, Any]
    files_processed: List[str] = Field(default_factory=list)
    files_skipped: List[SkippedFile] = Field(default_factory=list)


class PersistenceOutcome(BaseModel):
    """What happened to the best-effort write that follows a computed analysis"""
    saved: bool
    upload_id: Optional[int] = None
    analysis_id: Optional[int] = None
    error: Optional[str] = None


def validate_batch_size(file_count: int):
    if file_count < MIN_FILES_PER_BATCH:
        raise PreconditionError("No PDF files uploaded")
    if file_count > MAX_FILES_PER_BATCH:
        raise PreconditionError(f"A maximum of {MAX_FILES_PER_BATCH} files can be uploaded at once")


class StatementPipeline:
    """Drives text extraction, oracle analysis and persistence for a batch"""

    def __init__(
        self,
        db: Session,
        gemini_service: GeminiService,
        text_extractor: Callable[[bytes], str] = extract_text_from_pdf,
    ):
        self.db = db
        self.gemini_service = gemini_service
        self.text_extractor = text_extractor
        self.store = CreditCardService(db)

    def extract_texts(self, files: List[StatementFile]) -> Tuple[List[str], List[str], List[SkippedFile]]:
        """Extract text per file; unreadable files are skipped, not fatal"""
        texts, processed, skipped = [], [], []
        for statement in files:
            try:
                texts.append(self.text_extractor(statement.content))
                processed.append(statement.filename)
            except PdfTextError as e:
                logger.warning(f"Skipping {statement.filename}: {e}")
                skipped.append(SkippedFile(filename=statement.filename, reason=str(e)))
        return texts, processed, skipped

    async def analyze_text(self, statement_text: str) -> Dict[str, Any]:
        """
        Ask the oracle for the feature set of the statement text and clean it.

        Raises:
            ExtractionError: If the oracle answer is not a usable analysis
            OracleError: If the oracle call itself fails
        """
        prompt = build_statement_extraction_prompt(statement_text)
        try:
            raw = await self.gemini_service.generate_json(prompt)
            decoded = decode_statement_analysis(raw)
        except OracleResponseError as e:
            raise ExtractionError(f"Could not extract statement features: {e.message}")
        return validate_and_clean_response(decoded)

    async def compute_analysis(self, files: List[StatementFile]) -> ComputedAnalysis:
        validate_batch_size(len(files))

        texts, processed, skipped = self.extract_texts(files)
        if not texts:
            raise ExtractionError("None of the uploaded files contained readable statement text")

        logger.info(f"Analyzing {len(texts)} statement(s), {len(skipped)} skipped")
        analysis = await self.analyze_text(DOCUMENT_SEPARATOR.join(texts))
        return ComputedAnalysis(analysis=analysis, files_processed=processed, files_skipped=skipped)

    def persist_analysis(
        self,
        computed: ComputedAnalysis,
        customer_id: str,
        file_paths: List[str],
        card_bank: Optional[str] = None,
        card_name: Optional[str] = None,
    ) -> PersistenceOutcome:
        """Best-effort side write; failures are logged and reported, never raised"""
        upload_id = None
        try:
            user = self.store.get_user(customer_id)
            upload = self.store.create_document_upload(
                user,
                file_paths,
                card_bank=card_bank,
                card_name=card_name,
                oracle_response={
                    "status": "processed",
                    "filesProcessed": len(computed.files_processed),
                    "filesSkipped": [skip.filename for skip in computed.files_skipped],
                },
            )
            upload_id = upload.upload_id
            record = self.store.save_statement_analysis(computed.analysis, upload_id, customer_id)
        except CardMatchError as e:
            logger.error(f"Failed to save statement analysis for {customer_id}: {e.message}")
            return PersistenceOutcome(saved=False, upload_id=upload_id, error=e.message)

        logger.info(f"Statement analysis saved with ID: {record.analysis_id}")
        return PersistenceOutcome(saved=True, upload_id=upload_id, analysis_id=record.analysis_id)

    async def analyze_statements(
        self,
        files: List[StatementFile],
        customer_id: str,
        card_bank: Optional[str] = None,
        card_name: Optional[str] = None,
    ) -> Tuple[ComputedAnalysis, PersistenceOutcome]:
        """
        Analyze a batch of statements for a customer and record the result.

        Args:
            files: 1 to 5 uploaded statements
            customer_id: Customer id from the authentication response
            card_bank: Issuer label for the upload record
            card_name: Product label for the upload record

        Returns:
            The computed analysis and the outcome of persisting it

        Raises:
            PreconditionError: If the id is missing, unknown, or the file count is wrong
            ExtractionError: If no file produced usable output
        """
        if not customer_id:
            raise PreconditionError(
                "customerId is required. Please include the customerId from the authentication response."
            )
        validate_batch_size(len(files))
        self.store.get_user(customer_id)

        computed = await self.compute_analysis(files)
        file_paths = [statement.stored_path for statement in files if statement.stored_path]
        outcome = self.persist_analysis(computed, customer_id, file_paths, card_bank, card_name)
        return computed, outcome
