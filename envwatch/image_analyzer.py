import logging
from typing import Optional

import requests

from envwatch.categorization import analysis_from_response
from envwatch.config.settings import Settings
from envwatch.models.report import AIAnalysis

logger = logging.getLogger(__name__)

MOCK_ANALYSIS = AIAnalysis(detected=True, class_="Sampah (Mock)", confidence=0.95, raw_result={"mock": True})


class ClassifierError(Exception):
    pass


class RoboflowClassifier:
    """Client for a hosted Roboflow detection model. The image is passed by
    URL, so it must be publicly reachable."""

    def __init__(self, api_key: Optional[str], model_id: str, version: str,
                 base_url: str = "https://detect.roboflow.com", timeout: float = 15.0,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.model_id = model_id
        self.version = version
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RoboflowClassifier":
        api_key = settings.roboflow_api_key.get_secret_value() if settings.classifier_configured else None
        return cls(
            api_key=api_key,
            model_id=settings.roboflow_model_id,
            version=settings.roboflow_version,
            base_url=settings.roboflow_base_url,
            timeout=settings.classifier_timeout,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{self.model_id}/{self.version}"

    def detect(self, image_url: str) -> dict:
        """Raw detection payload for the image at `image_url`."""
        try:
            response = self.session.post(
                self.endpoint,
                params={"api_key": self.api_key, "image": image_url},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise ClassifierError(f"Detection request failed: {e}") from e
        except ValueError as e:
            raise ClassifierError(f"Detection response is not JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ClassifierError("Detection response is not a JSON object")
        return payload

    def analyze_image(self, image_url: str) -> AIAnalysis:
        if not self.configured:
            logger.info("ROBOFLOW_API_KEY missing, using mock analysis")
            return MOCK_ANALYSIS.model_copy(deep=True)
        payload = self.detect(image_url)
        analysis = analysis_from_response(payload)
        logger.info("Detected class=%s confidence=%.2f", analysis.class_, analysis.confidence)
        return analysis
