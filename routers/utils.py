from fastapi import HTTPException, status, Header, UploadFile
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from uuid import uuid4
import os
import logging
from dotenv import load_dotenv
load_dotenv()

logger = logging.getLogger(__name__)

# Static API token handed out by /authenticate
AUTH_TOKEN = os.getenv("AUTH_TOKEN")

# Local file storage configuration
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
STATEMENTS_DIR = os.path.join(UPLOAD_DIR, "statements")

MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10MB
PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}


def verify_api_token(authorization: Optional[str] = Header(None)) -> str:
    """
    Dependency that checks the Authorization header against AUTH_TOKEN.

    Accepts either the bare token or "Bearer <token>".

    Raises:
        HTTPException: 401 if the header is missing or does not match
    """
    if not AUTH_TOKEN:
        logger.error("AUTH_TOKEN is not configured; rejecting authenticated request")

    token = (authorization or "").strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()

    if not token or not AUTH_TOKEN or token != AUTH_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def validate_pdf_upload(file: UploadFile) -> None:
    """
    Reject uploads that are not PDFs or exceed the size limit.

    Raises:
        HTTPException: 400 with the reason
    """
    filename = file.filename or "uploaded_file"
    file_ext = os.path.splitext(filename)[1].lower()
    if file.content_type not in PDF_CONTENT_TYPES and file_ext != ".pdf":
        raise HTTPException(
            status_code=400,
            detail=f"Only PDF files are allowed: {filename}",
        )

    # Validate file size (max 10MB)
    file.file.seek(0, 2)  # Seek to end
    file_size = file.file.tell()
    file.file.seek(0)  # Reset to beginning

    if file_size > MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"File too large: {filename}. Max size: {MAX_UPLOAD_SIZE / (1024*1024)}MB",
        )


def save_upload_locally(contents: bytes, filename: Optional[str], customer_id: str) -> str:
    """
    Store an uploaded statement under UPLOAD_DIR and return its path.

    Args:
        contents: File bytes already read from the upload
        filename: Original filename, used for the extension
        customer_id: Owner of the upload, used as the folder name

    Returns:
        Path of the stored file
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    file_extension = os.path.splitext(filename or "")[1] or ".pdf"

    customer_dir = os.path.join(STATEMENTS_DIR, customer_id)
    Path(customer_dir).mkdir(parents=True, exist_ok=True)

    unique_filename = f"{timestamp}_{uuid4().hex[:8]}{file_extension}"
    file_path = os.path.join(customer_dir, unique_filename)
    with open(file_path, "wb") as f:
        f.write(contents)

    logger.info(f"Stored upload {filename} at {file_path}")
    return file_path


def remove_stored_uploads(file_paths: List[str]) -> None:
    """Delete stored statements that no upload record points at"""
    for file_path in file_paths:
        try:
            Path(file_path).unlink(missing_ok=True)
            logger.info(f"Removed unreferenced upload {file_path}")
        except OSError as e:
            logger.warning(f"Could not remove upload {file_path}: {e}")
