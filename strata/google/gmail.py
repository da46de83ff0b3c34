"""
Gmail API client.
Sends plain-text messages and reads them back for confirmation.
"""

import base64
import logging
from email.mime.text import MIMEText

from ..models import Result
from .base import build_service, require_token, run_google_call

logger = logging.getLogger(__name__)


def build_raw_message(to: str, subject: str, body: str) -> str:
    msg = MIMEText(body, "plain", "utf-8")
    msg["To"] = to
    msg["Subject"] = subject
    return base64.urlsafe_b64encode(msg.as_bytes()).decode("utf-8")


class GmailClient:
    """Wraps the Gmail v1 calls the engine needs."""

    async def send_email(
        self,
        token: str | None,
        to: str,
        subject: str,
        body: str,
        idempotency_key: str | None = None,
    ) -> Result[str]:
        """Send one message and return its Gmail message id."""
        if (missing := require_token(token)) is not None:
            return missing
        raw = build_raw_message(to, subject, body)

        def _sync():
            return build_service("gmail", "v1", token).users().messages().send(
                userId="me", body={"raw": raw}
            ).execute()

        result = await run_google_call("gmail.send", _sync)
        if not result.ok:
            return result
        message_id = (result.value or {}).get("id", "")
        logger.info("Sent message %s to %s (key=%s)", message_id, to, idempotency_key)
        return Result.success(message_id)

    async def get_message(self, token: str | None, message_id: str) -> Result[dict]:
        """Metadata for one message: id, labelIds and the To/Subject headers."""
        if (missing := require_token(token)) is not None:
            return missing

        def _sync():
            return build_service("gmail", "v1", token).users().messages().get(
                userId="me",
                id=message_id,
                format="metadata",
                metadataHeaders=["To", "Subject"],
            ).execute()

        result = await run_google_call("gmail.get", _sync)
        if not result.ok:
            return result
        raw = result.value or {}
        headers = {
            h.get("name", "").lower(): h.get("value", "")
            for h in raw.get("payload", {}).get("headers", [])
        }
        return Result.success({
            "id": raw.get("id", message_id),
            "label_ids": raw.get("labelIds", []),
            "to": headers.get("to", ""),
            "subject": headers.get("subject", ""),
        })
