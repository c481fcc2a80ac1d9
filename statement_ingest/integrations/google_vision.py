"""
Google Cloud Vision API client for OCR of scanned statements and photos.
"""

import base64
import io
import json
import os
from typing import Optional

import structlog
from google.auth.exceptions import GoogleAuthError
from google.cloud import vision
from google.oauth2 import service_account
from PIL import Image

from ..config import Settings, get_settings
from .ocr_engine import OcrEngineError

logger = structlog.get_logger()


class GoogleVisionClient:
    """
    Client for Google Cloud Vision API.
    Uses document text detection, which suits dense statement layouts.
    """

    name = "google_vision"

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        try:
            self.client = self._initialize_client()
        except (GoogleAuthError, OSError, ValueError) as e:
            raise OcrEngineError(f"Could not initialize Vision client: {e}") from e

    def _initialize_client(self) -> vision.ImageAnnotatorClient:
        """Initialize Google Vision client with credentials."""
        # Option 1: Service account file from settings
        if self.settings.google_application_credentials:
            logger.info("Using credentials from settings", path=self.settings.google_application_credentials)
            credentials = service_account.Credentials.from_service_account_file(
                self.settings.google_application_credentials
            )
            return vision.ImageAnnotatorClient(credentials=credentials)

        # Option 2: Base64 encoded credentials
        if self.settings.google_credentials_base64:
            logger.info("Using base64 credentials")
            credentials_json = base64.b64decode(
                self.settings.google_credentials_base64
            ).decode("utf-8")
            credentials = service_account.Credentials.from_service_account_info(
                json.loads(credentials_json)
            )
            return vision.ImageAnnotatorClient(credentials=credentials)

        # Option 3: Environment variable GOOGLE_APPLICATION_CREDENTIALS
        env_creds = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        if env_creds and os.path.exists(env_creds):
            logger.info("Using credentials from GOOGLE_APPLICATION_CREDENTIALS", path=env_creds)
            credentials = service_account.Credentials.from_service_account_file(env_creds)
            return vision.ImageAnnotatorClient(credentials=credentials)

        # Option 4: Application Default Credentials
        logger.warning("Using default Application Default Credentials")
        return vision.ImageAnnotatorClient()

    def recognize(self, image: Image.Image) -> str:
        """
        Run document text detection on one image.

        Raises:
            OcrEngineError: transport failure or an error in the API response
        """
        img_byte_arr = io.BytesIO()
        image.save(img_byte_arr, format="PNG")
        vision_image = vision.Image(content=img_byte_arr.getvalue())

        try:
            response = self.client.document_text_detection(
                image=vision_image,
                timeout=self.settings.ocr_timeout_seconds,
            )
        except Exception as e:
            # gRPC and transport errors have no common base class
            raise OcrEngineError(f"Vision API request failed: {e}") from e

        if response.error.message:
            raise OcrEngineError(f"Vision API parsing error: {response.error.message}")

        text = response.full_text_annotation.text if response.full_text_annotation else ""
        logger.debug("Vision recognized text", characters=len(text))
        return text
