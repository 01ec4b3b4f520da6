# src/data_access/enterpret_client.py
"""
Enterpret REST API client for delivering feedback records.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Union

import requests

from src.config.settings import Settings
from src.data_access.http import request_with_rate_limit
from src.models.exceptions import ApiConnectionError, DeliveryError, FeedbackValidationError
from src.models.schemas import FeedbackRecord

FeedbackData = Union[FeedbackRecord, Dict[str, Any]]


class EnterpretClient:
    """Enterpret API client (destination platform)."""

    def __init__(
        self,
        config: Settings,
        logger: Optional[logging.Logger] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config
        self.base_url = config.enterpret_api_url
        self.logger = logger or logging.getLogger(__name__)
        self.sleep = sleep

        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-API-Key": config.enterpret_api_key or "",
        })

    def validate_connection(self) -> None:
        """
        Check the Enterpret status endpoint.

        Raises:
            ApiConnectionError: If Enterpret cannot be reached or rejects the key
        """
        try:
            response = self._request("GET", "/api/v1/status")
            response.raise_for_status()
        except requests.RequestException as e:
            raise ApiConnectionError("Enterpret", str(e)) from e

        self.logger.debug("Connected to Enterpret API successfully")

    def import_feedback(self, feedback: FeedbackData) -> Any:
        """
        Import a single feedback record.

        Args:
            feedback: Transformed record (model or payload dict)

        Returns:
            Parsed Enterpret response body

        Raises:
            FeedbackValidationError: If the record fails local validation (nothing is sent)
            DeliveryError: If the request fails
        """
        payload = self._to_payload(feedback)
        self._validate_feedback_data(payload)

        record_id = payload.get("id")
        response_body = self._post("/api/v1/feedback", payload, record_id)

        self.logger.debug(f"Successfully imported feedback: {record_id}")
        return response_body

    def import_feedback_batch(self, feedback_items: List[FeedbackData]) -> Any:
        """
        Import multiple feedback records in one request.

        Every record is validated before anything is sent.

        Raises:
            ValueError: If no records are given
            FeedbackValidationError: If any record fails local validation
            DeliveryError: If the request fails
        """
        if not feedback_items:
            raise ValueError("No feedback items provided for batch import")

        payloads = [self._to_payload(item) for item in feedback_items]
        for payload in payloads:
            self._validate_feedback_data(payload)

        response_body = self._post("/api/v1/feedback/batch", {"items": payloads}, f"batch of {len(payloads)}")

        self.logger.debug(f"Successfully imported batch of {len(payloads)} feedback items")
        return response_body

    @staticmethod
    def _to_payload(feedback: FeedbackData) -> Dict[str, Any]:
        if isinstance(feedback, FeedbackRecord):
            return feedback.to_payload()
        return dict(feedback)

    @staticmethod
    def _validate_feedback_data(data: Dict[str, Any]) -> None:
        """Reject payloads Enterpret would refuse."""
        record_id = data.get("id")
        for field in ("id", "source", "timestamp"):
            if not data.get(field):
                raise FeedbackValidationError(record_id, f"missing required field: {field}")

        if not data.get("content") and not data.get("metadata"):
            raise FeedbackValidationError(record_id, "must have either content or metadata")

    def _post(self, path: str, body: Any, record_id: Optional[str]) -> Any:
        try:
            response = self._request("POST", path, json=body)
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error(f"Error importing feedback {record_id}: {e}")
            raise DeliveryError(record_id, str(e)) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        return request_with_rate_limit(
            self.session,
            method,
            f"{self.base_url}{path}",
            sleep=self.sleep,
            logger=self.logger,
            **kwargs
        )
