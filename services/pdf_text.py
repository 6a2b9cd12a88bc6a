"""
PDF text extraction using PyMuPDF
"""
import logging
import fitz  # PyMuPDF

logger = logging.getLogger(__name__)


class PdfTextError(Exception):
    """Raised when a PDF cannot be opened or holds no text"""


def extract_text_from_pdf(pdf_bytes: bytes) -> str:
    """
    Extract the text layer of every page.

    Args:
        pdf_bytes: PDF file as bytes

    Returns:
        Page texts joined by newlines

    Raises:
        PdfTextError: If the file is empty, unreadable or has no text layer
    """
    if not pdf_bytes:
        raise PdfTextError("File is empty")

    try:
        pdf_document = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as e:
        raise PdfTextError(f"Invalid PDF file: {str(e)}")

    try:
        pages = [page.get_text() for page in pdf_document]
    except Exception as e:
        raise PdfTextError(f"Failed to read PDF text: {str(e)}")
    finally:
        pdf_document.close()

    text = "\n".join(pages).strip()
    if not text:
        raise PdfTextError("PDF contains no extractable text")

    logger.info(f"Extracted {len(text)} characters from {len(pages)} page(s)")
    return text
