"""
OCR providers: turn screenshot bytes into text.

OCR.space is the production engine. A failed or timed-out call is never
fatal: it yields empty text and the upload is then rejected as
"username not found". There is no retry.
"""
import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class OcrSpaceProvider:
    """Client for the OCR.space parse/image endpoint."""

    def __init__(self, api_key: str = None, url: str = None, language: str = None, engine: int = None,
                 timeout: float = None):
        self.name = "ocr_space"
        self.api_key = api_key if api_key is not None else settings.OCR_SPACE_API_KEY
        self.url = url or settings.OCR_SPACE_URL
        self.language = language or settings.OCR_LANGUAGE
        self.engine = engine or settings.OCR_ENGINE
        self.timeout = timeout or settings.OCR_TIMEOUT_SECONDS

    def extract_text(self, image_bytes: bytes, filename: str) -> str:
        if not self.api_key:
            logger.warning("OCR_SPACE_API_KEY is not configured, skipping OCR")
            return ""

        try:
            response = requests.post(
                self.url,
                data={
                    "apikey": self.api_key,
                    "language": self.language,
                    "OCREngine": str(self.engine),
                },
                files={"file": (filename, image_bytes)},
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.warning(f"OCR.space timed out after {self.timeout}s for {filename}")
            return ""
        except requests.RequestException as e:
            logger.warning(f"OCR.space request failed for {filename}: {e}")
            return ""

        if response.status_code != 200:
            logger.warning(
                "OCR.space returned HTTP %s for %s: %s", response.status_code, filename, response.text[:200]
            )
            return ""

        try:
            payload = response.json()
        except ValueError:
            logger.warning(f"OCR.space returned a non-JSON body for {filename}")
            return ""

        parsed_results = payload.get("ParsedResults") or []
        text = parsed_results[0].get("ParsedText") if parsed_results else None
        if not text:
            logger.warning(
                "OCR.space returned no text for %s (exit code %s): %s",
                filename, payload.get("OCRExitCode"), payload.get("ErrorMessage"),
            )
            return ""

        logger.info(f"OCR.space extracted {len(text)} chars from {filename}")
        return text


class MockOcrProvider:
    """Returns canned text, for local demos without an API key."""

    def __init__(self, text: str = None):
        self.name = "mock"
        self.text = text if text is not None else settings.OCR_MOCK_TEXT

    def extract_text(self, image_bytes: bytes, filename: str) -> str:
        logger.info(f"Mock OCR returning {len(self.text)} chars for {filename}")
        return self.text


def get_ocr_provider():
    if settings.OCR_PROVIDER == "mock":
        return MockOcrProvider()
    return OcrSpaceProvider()
