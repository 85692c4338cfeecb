"""
Microsoft 365 (Graph API) client

Provides:
- Client-credentials token retrieval
- Calendar event creation on the sender mailbox
- Mail sending through the sender mailbox
"""
import logging
from typing import Dict, Any, List, Optional

import requests

from allevapp.config import settings
from allevapp.errors import ConfigurationError, IntegrationError

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
TOKEN_URL = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
REQUEST_TIMEOUT = 30


class GraphClient:
    """Thin wrapper over the Graph endpoints used by the application"""

    def __init__(self):
        self.tenant_id = settings.microsoft_tenant_id
        self.client_id = settings.microsoft_client_id
        self.client_secret = settings.microsoft_client_secret
        self.sender_email = settings.microsoft_sender_email

    @property
    def configured(self) -> bool:
        return all([self.tenant_id, self.client_id, self.client_secret, self.sender_email])

    def get_access_token(self) -> str:
        if not self.configured:
            raise ConfigurationError(
                "Microsoft 365 credentials not configured. Set MICROSOFT_TENANT_ID, "
                "MICROSOFT_CLIENT_ID, MICROSOFT_CLIENT_SECRET and MICROSOFT_SENDER_EMAIL."
            )

        try:
            response = requests.post(
                TOKEN_URL.format(tenant_id=self.tenant_id),
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "scope": "https://graph.microsoft.com/.default",
                    "grant_type": "client_credentials",
                },
                timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as e:
            raise IntegrationError("Could not reach Microsoft 365 login service", original_error=e)

        if not response.ok:
            logger.error(f"Token request failed: {response.status_code} {response.text}")
            raise IntegrationError(
                f"Failed to authenticate with Microsoft 365: {response.status_code}"
            )

        token = response.json().get("access_token")
        if not token:
            raise IntegrationError("No access token received from Microsoft 365")
        return token

    def _post(self, path: str, payload: Dict[str, Any]) -> requests.Response:
        token = self.get_access_token()
        try:
            response = requests.post(
                f"{GRAPH_BASE_URL}/users/{self.sender_email}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
                timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as e:
            raise IntegrationError(f"Microsoft Graph request to {path} failed", original_error=e)

        if not response.ok:
            logger.error(f"Graph {path} failed: {response.status_code} {response.text}")
            raise IntegrationError(f"Microsoft Graph request to {path} failed: {response.status_code}")
        return response

    def create_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Create a calendar event; returns the Graph event id and web link"""
        result = self._post("/events", event).json()
        logger.info(f"Calendar event created: {result.get('id')}")
        return {"event_id": result.get("id"), "web_link": result.get("webLink")}

    def send_mail(self, to: List[str], subject: str, html_body: str, cc: Optional[List[str]] = None) -> None:
        message = {
            "subject": subject,
            "body": {"contentType": "HTML", "content": html_body},
            "toRecipients": [{"emailAddress": {"address": address}} for address in to],
        }
        if cc:
            message["ccRecipients"] = [{"emailAddress": {"address": address}} for address in cc]

        self._post("/sendMail", {"message": message, "saveToSentItems": True})
        logger.info(f"Mail '{subject}' sent to {', '.join(to)} via Microsoft Graph")
