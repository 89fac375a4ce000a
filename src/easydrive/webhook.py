"""
Client for the extraction and submission webhooks.
"""

import base64
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import requests

from .config import config
from .exceptions import NetworkError
from .models import ExtractedRecord, SelectedFile
from .session import Identity

logger = logging.getLogger(__name__)


def encode_file(selected: SelectedFile) -> Dict[str, Any]:
    """Transport form of a file: metadata plus base64 content."""
    return {
        "name": selected.name,
        "type": selected.type,
        "size": selected.byte_count,
        "base64": base64.b64encode(selected.content).decode("ascii"),
    }


def unwrap_response(data: Any) -> Optional[Dict[str, Any]]:
    """
    Normalize a webhook body to a single object.

    A bare object is returned as is; a list yields its first element. Anything
    else (including an empty list or a non-object element) yields None.
    """
    if isinstance(data, list):
        data = data[0] if data else None
    return data if isinstance(data, dict) else None


def utc_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WebhookClient:
    """Posts documents for extraction and confirmed records for submission"""

    def __init__(
        self,
        extract_url: Optional[str] = None,
        submit_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.extract_url = extract_url or config.EXTRACT_WEBHOOK_URL
        self.submit_url = submit_url or config.SUBMIT_WEBHOOK_URL
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT

    def extract(self, files: Sequence[SelectedFile]) -> Any:
        """
        Send files to the extraction service.

        Returns:
            The raw ``output`` object of the response, or None when absent

        Raises:
            NetworkError: On transport failure or non-success status
        """
        payload = {"files": [encode_file(f) for f in files]}
        body = unwrap_response(self._post(self.extract_url, payload, "Upload failed"))
        return body.get("output") if body else None

    def submit(
        self,
        record: ExtractedRecord,
        files: Sequence[SelectedFile],
        identity: Identity,
        submitted_at: Optional[datetime] = None,
    ) -> Optional[str]:
        """
        Send the confirmed record to the submission service.

        Returns:
            Non-blank receipt text from the response, or None

        Raises:
            NetworkError: On transport failure or non-success status
        """
        payload = {
            "submittedAt": utc_timestamp(submitted_at),
            "user": {"name": identity.name, "email": identity.email},
            "userName": identity.display_label,
            "files": [encode_file(f) for f in files],
            "formData": record.to_dict(),
        }
        body = unwrap_response(self._post(self.submit_url, payload, "Webhook failed"))
        text = body.get("text") if body else None
        if isinstance(text, str) and text.strip():
            return text
        return None

    def _post(self, url: str, payload: Dict[str, Any], failure_label: str) -> Any:
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(str(e) or failure_label)

        if not response.ok:
            text = response.text or ""
            raise NetworkError(text or f"{failure_label} ({response.status_code})", response.status_code)

        try:
            return response.json()
        except ValueError:
            logger.debug("Webhook %s returned a non-JSON body", url)
            return None


def build_files(selected: Optional[SelectedFile]) -> List[SelectedFile]:
    return [selected] if selected is not None else []
