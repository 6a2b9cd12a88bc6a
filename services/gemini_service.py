"""
Gemini Integration Service
Handles communication with Google Gemini API for statement analysis,
card scoring and catalog extraction
"""
import os
import re
import json
import asyncio
from typing import List, Dict, Any, Optional
import google.generativeai as genai
from google.generativeai.types import HarmCategory, HarmBlockThreshold
from dotenv import load_dotenv
import logging

from services.exceptions import OracleError, OracleTimeoutError, OracleResponseError

load_dotenv()

logger = logging.getLogger(__name__)

_THINK_BLOCK = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
_THINK_TAG = re.compile(r"</?think>", re.IGNORECASE)
_FENCED_BLOCK = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$")


def _parse_timeout(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    timeout = float(value)
    return timeout if timeout > 0 else None


def extract_json_payload(text: str) -> Any:
    """
    Pull the JSON document out of a model answer.

    Strips <think> blocks and markdown fences, then falls back to the span
    between the first '{' and the last '}'.

    Raises:
        OracleResponseError: If no JSON document can be parsed
    """
    if not text or not text.strip():
        raise OracleResponseError("Empty response from Gemini")

    cleaned = _THINK_BLOCK.sub("", text)
    cleaned = _THINK_TAG.sub("", cleaned).strip()

    match = _FENCED_BLOCK.match(cleaned)
    if match:
        cleaned = match.group(1).strip()
    elif cleaned.startswith("`") and cleaned.endswith("`"):
        cleaned = cleaned.strip("`").strip()

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise OracleResponseError("No valid JSON found in Gemini response")
    try:
        return json.loads(cleaned[start:end + 1])
    except json.JSONDecodeError as e:
        raise OracleResponseError(f"Invalid JSON in Gemini response: {e.msg}")


class GeminiService:
    """Service for interacting with Google Gemini API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        api_key = api_key or os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise ValueError("GEMINI_API_KEY environment variable is required")

        genai.configure(api_key=api_key)

        self.model_name = model_name or os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
        if timeout_seconds is None:
            timeout_seconds = _parse_timeout(os.getenv("ORACLE_TIMEOUT_SECONDS"))
        self.timeout_seconds = timeout_seconds

        # Safety settings
        self.safety_settings = {
            HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
        }

        try:
            self.model = genai.GenerativeModel(
                model_name=self.model_name,
                safety_settings=self.safety_settings
            )
            logger.info(f"Initialized Gemini model: {self.model_name} (timeout: {self.timeout_seconds or 'none'})")
        except Exception as e:
            logger.error(f"Failed to initialize Gemini model: {e}")
            raise

    async def generate_content(
        self,
        prompt: str,
        attachments: Optional[List[Dict[str, Any]]] = None,
        temperature: float = 0.1,
    ) -> str:
        """
        Generate content for a single prompt.

        Args:
            prompt: The prompt to send to Gemini
            attachments: Inline parts, e.g. {'mime_type': 'application/pdf', 'data': bytes}
            temperature: Sampling temperature (0.0-1.0)

        Returns:
            Generated text content

        Raises:
            OracleTimeoutError: If the call exceeds the configured timeout
            OracleError: If the API call fails
        """
        contents: List[Any] = [prompt]
        if attachments:
            contents.extend(attachments)

        try:
            response = await asyncio.wait_for(
                self.model.generate_content_async(
                    contents,
                    generation_config={"temperature": temperature}
                ),
                timeout=self.timeout_seconds,
            )
            return response.text
        except asyncio.TimeoutError:
            logger.error(f"Gemini call timed out after {self.timeout_seconds}s")
            raise OracleTimeoutError(f"Gemini did not respond within {self.timeout_seconds} seconds")
        except Exception as e:
            logger.error(f"Error generating content: {e}")
            raise OracleError(f"Failed to generate content: {str(e)}")

    async def generate_json(
        self,
        prompt: str,
        attachments: Optional[List[Dict[str, Any]]] = None,
        temperature: float = 0.1,
    ) -> Any:
        """Generate content and parse the JSON document it contains."""
        text = await self.generate_content(prompt, attachments=attachments, temperature=temperature)
        logger.info(f"Received Gemini response ({len(text)} chars)")
        return extract_json_payload(text)


# Global instance (one per process)
_gemini_service_instance = None

def get_gemini_service() -> GeminiService:
    """
    Get or create the global GeminiService instance.

    Returns:
        Shared GeminiService instance
    """
    global _gemini_service_instance
    if _gemini_service_instance is None:
        _gemini_service_instance = GeminiService()
    return _gemini_service_instance
