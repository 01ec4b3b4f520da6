# src/data_access/gladly_client.py
"""
Gladly REST API client: conversations, conversation items and customer profiles.
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, List, Optional, Type

import requests
from pydantic import ValidationError

from src.config.settings import Settings
from src.data_access.http import request_with_rate_limit
from src.models.exceptions import ApiConnectionError, EnrichmentError, FetchError, PipelineError
from src.models.schemas import Conversation, ConversationItem, ConversationPage, CustomerProfile, to_iso8601

# Responses Gladly uses to point at the profile a customer was merged into
MERGE_REDIRECT_STATUSES = {301, 302, 307, 308}


class GladlyClient:
    """Gladly API client (source platform)."""

    def __init__(
        self,
        config: Settings,
        logger: Optional[logging.Logger] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config
        self.base_url = config.gladly_api_url
        self.logger = logger or logging.getLogger(__name__)
        self.sleep = sleep

        self.session = session or requests.Session()
        self.session.auth = (config.gladly_username, config.gladly_api_token)
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def validate_connection(self) -> None:
        """
        Make one lightweight authenticated call.

        Raises:
            ApiConnectionError: If Gladly cannot be reached or rejects the credentials
        """
        try:
            organization = self._get_json("/api/v1/organization", FetchError)
        except FetchError as e:
            raise ApiConnectionError("Gladly", str(e)) from e

        name = organization.get("name") if isinstance(organization, dict) else None
        self.logger.debug(f"Connected to Gladly organization: {name}")

    def fetch_conversations(
        self,
        start_date: datetime,
        end_date: datetime,
        page: int = 1,
        page_size: int = 100
    ) -> ConversationPage:
        """
        Fetch one page of conversations created inside a time window.

        Args:
            start_date: Window start
            end_date: Window end
            page: 1-based page number
            page_size: Number of conversations per page

        Returns:
            ConversationPage; has_more is True while a page comes back full

        Raises:
            FetchError: If the listing call fails
        """
        params = {
            "startAt": to_iso8601(start_date),
            "endAt": to_iso8601(end_date),
            "offset": (page - 1) * page_size,
            "limit": page_size,
        }

        payload = self._get_json("/api/v1/conversations", FetchError, params=params)

        if isinstance(payload, dict):
            payload = payload.get("conversations")
        if not isinstance(payload, list):
            return ConversationPage(conversations=[], has_more=False)

        conversations = []
        for raw in payload:
            try:
                conversations.append(Conversation.model_validate(raw))
            except ValidationError as e:
                self.logger.warning(f"Skipping malformed conversation in page {page}: {e}")

        return ConversationPage(
            conversations=conversations,
            has_more=len(payload) >= page_size
        )

    def fetch_conversation_items(self, conversation_id: str) -> List[ConversationItem]:
        """
        Fetch all items of a conversation.

        A failed call degrades to an empty list; the conversation is still imported
        without content.
        """
        try:
            payload = self._get_json(f"/api/v1/conversations/{conversation_id}/items", EnrichmentError)
        except EnrichmentError as e:
            self.logger.error(f"Error fetching conversation items for {conversation_id}: {e}")
            return []

        if not isinstance(payload, list):
            return []

        items = []
        for raw in payload:
            try:
                items.append(ConversationItem.model_validate(raw))
            except ValidationError as e:
                self.logger.warning(f"Skipping malformed item in conversation {conversation_id}: {e}")
        return items

    def fetch_customer(self, customer_id: str) -> Optional[CustomerProfile]:
        """
        Fetch a customer profile, following a merge redirect once.

        Returns:
            The profile, or None if it could not be fetched
        """
        try:
            return self._load_customer(customer_id, follow_merge=True)
        except EnrichmentError as e:
            self.logger.error(f"Error fetching customer {customer_id}: {e}")
            return None

    def _load_customer(self, customer_id: str, follow_merge: bool) -> CustomerProfile:
        path = f"/api/v1/customer-profiles/{customer_id}"
        try:
            response = self._request("GET", path, allow_redirects=False)
        except requests.RequestException as e:
            raise EnrichmentError(f"GET {path} failed: {e}") from e

        location = response.headers.get("Location")
        if response.status_code in MERGE_REDIRECT_STATUSES and location:
            new_id = location.rstrip("/").split("/")[-1]
            if not follow_merge:
                raise EnrichmentError(f"Customer {customer_id} moved again to {new_id}")
            self.logger.info(f"Customer {customer_id} has been merged into {new_id}. Fetching new ID.")
            return self._load_customer(new_id, follow_merge=False)

        try:
            response.raise_for_status()
            return CustomerProfile.model_validate(response.json())
        except (requests.RequestException, ValueError) as e:
            raise EnrichmentError(f"GET {path} failed: {e}") from e

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        return request_with_rate_limit(
            self.session,
            method,
            f"{self.base_url}{path}",
            sleep=self.sleep,
            logger=self.logger,
            **kwargs
        )

    def _get_json(self, path: str, error_cls: Type[PipelineError], **kwargs) -> Any:
        try:
            response = self._request("GET", path, **kwargs)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise error_cls(f"GET {path} failed: {e}") from e
