"""
Analysis Service Adapter

Talks to the vision-model endpoint that classifies equipment photos and
extracts nameplate data. Runs in mock mode (scripted responses) when no
API URL is configured.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
import requests
from pydantic import ValidationError

from .exceptions import AnalysisServiceError, ClassificationError, ExtractionError
from .models import Classification, ExtractedData

logger = logging.getLogger(__name__)


RESPONSE_SCHEMA = {
    "type": "object",
    "required": ["success"],
    "properties": {
        "success": {"type": "boolean"},
        "data": {"type": ["object", "null"]},
        "error": {"type": ["string", "null"]},
    },
}

CLASSIFICATION_SCHEMA = {
    "type": "object",
    "required": ["equipmentType"],
    "properties": {
        "equipmentType": {"type": "string", "minLength": 1},
        "confidence": {"type": ["string", "null"]},
        "imageQuality": {"type": ["string", "null"]},
        "extractionFeasibility": {"type": ["string", "null"]},
        "issues": {"type": "array", "items": {"type": "string"}},
    },
}

EXTRACTION_SCHEMA = {
    "type": "object",
    "properties": {
        "manufacturer": {"type": ["string", "number", "null"]},
        "model": {"type": ["string", "number", "null"]},
        "electrical": {"type": ["object", "null"]},
        "confidenceScores": {"type": "object"},
        "extractionQuality": {"type": "object"},
        "missingFields": {"type": "array", "items": {"type": "string"}},
    },
}

DEFAULT_MOCK_CLASSIFICATION = {
    "equipmentType": "PANEL_NAMEPLATE",
    "confidence": "medium",
    "imageQuality": "good",
    "extractionFeasibility": "FULL",
    "issues": [],
}

DEFAULT_MOCK_EXTRACTION = {
    "electrical": {},
    "confidenceScores": {"overall": 0.5},
    "extractionQuality": {},
    "missingFields": [],
}


def _schema_errors(schema: Dict, data: Any) -> List[str]:
    validator = jsonschema.Draft7Validator(schema)
    return [
        f"{e.json_path}: {e.message}"
        for e in list(validator.iter_errors(data))[:5]
    ]


class AnalysisAdapter:
    """
    Adapter for the equipment analysis endpoint.

    Every request is POSTed to the single configured URL; the prompt is
    selected by the "equipmentType" field ("classification" for the
    classification pass, an extraction type otherwise).
    """

    def __init__(self, config: Optional[Dict] = None,
                 mock_responses: Optional[Dict[str, List[Dict]]] = None):
        """
        Initialize analysis adapter.

        Args:
            config: The "analysis" config section (api_url, api_key, timeout,
                    mock_responses_path). Mock mode when api_url is empty.
            mock_responses: Scripted responses for mock mode:
                    {"classifications": [...], "extractions": [...]}, each
                    consumed in order. An entry may be a full
                    {"success", "data"} envelope, a bare data object, or
                    {"error": "..."} to simulate a failure.
        """
        self.config = config or {}
        self.mock_mode = not self.config.get("api_url")
        self.timeout = self.config.get("timeout", 60)

        if mock_responses is None and self.config.get("mock_responses_path"):
            mock_responses = self._load_mock_responses(self.config["mock_responses_path"])

        mock_responses = mock_responses or {}
        self._mock_classifications = list(mock_responses.get("classifications", []))
        self._mock_extractions = list(mock_responses.get("extractions", []))

    @staticmethod
    def _load_mock_responses(path: str) -> Dict[str, List[Dict]]:
        try:
            with open(Path(path).expanduser(), 'r') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise AnalysisServiceError(f"Cannot load mock responses from {path}: {e}")

    def classify(self, image_data: str) -> Classification:
        """
        Classify the equipment shown in an image.

        Args:
            image_data: Base64-encoded image

        Returns:
            Classification

        Raises:
            ClassificationError: On transport failure or an invalid response
        """
        if self.mock_mode:
            response = self._next_mock(self._mock_classifications, DEFAULT_MOCK_CLASSIFICATION)
        else:
            response = self._post(image_data, "classification", ClassificationError)

        data = self._unwrap(response, CLASSIFICATION_SCHEMA, ClassificationError, "classification")
        return self._build(Classification, data, ClassificationError, "classification")

    def extract(self, image_data: str, extraction_type: str) -> ExtractedData:
        """
        Extract nameplate data from an image.

        Args:
            image_data: Base64-encoded image
            extraction_type: Prompt type (transformer, service_disconnect, meter, electrical)

        Returns:
            ExtractedData

        Raises:
            ExtractionError: On transport failure or an invalid response
        """
        if self.mock_mode:
            response = self._next_mock(self._mock_extractions, DEFAULT_MOCK_EXTRACTION)
        else:
            response = self._post(image_data, extraction_type, ExtractionError)

        data = self._unwrap(response, EXTRACTION_SCHEMA, ExtractionError, "extraction")
        return self._build(ExtractedData, data, ExtractionError, "extraction")

    # Mock implementation

    @staticmethod
    def _next_mock(queue: List[Dict], default: Dict) -> Dict:
        entry = queue.pop(0) if queue else copy.deepcopy(default)
        if isinstance(entry, dict) and "success" not in entry and "error" not in entry:
            return {"success": True, "data": entry}
        if isinstance(entry, dict) and "error" in entry and "success" not in entry:
            return {"success": False, "data": None, "error": entry["error"]}
        return entry

    # Real implementation

    def _post(self, image_data: str, equipment_type: str, error_cls) -> Any:
        headers = {"Content-Type": "application/json"}
        if self.config.get("api_key"):
            headers["Authorization"] = f"Bearer {self.config['api_key']}"

        try:
            response = requests.post(
                self.config["api_url"],
                headers=headers,
                json={
                    "imageBase64": image_data,
                    "images": [image_data],
                    "equipmentType": equipment_type,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise error_cls(f"Request to analysis service failed: {e}")
        except ValueError as e:
            raise error_cls(f"Analysis service returned non-JSON body: {e}")

    @staticmethod
    def _unwrap(response: Any, data_schema: Dict, error_cls, kind: str) -> Dict:
        errors = _schema_errors(RESPONSE_SCHEMA, response)
        if errors:
            raise error_cls(f"Invalid {kind} response: {'; '.join(errors)}")

        if not response["success"] or not response.get("data"):
            detail = response.get("error") or "no data returned"
            raise error_cls(f"Invalid {kind} response: {detail}")

        data = response["data"]
        errors = _schema_errors(data_schema, data)
        if errors:
            raise error_cls(f"Invalid {kind} response: {'; '.join(errors)}")

        return data

    @staticmethod
    def _build(model_cls, data: Dict, error_cls, kind: str):
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            fields = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()[:5]
            )
            raise error_cls(f"Invalid {kind} response: {fields}")


__all__ = ["AnalysisAdapter"]
