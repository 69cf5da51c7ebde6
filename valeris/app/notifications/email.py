import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

EMAIL_TYPES = ("welcome", "trial_expiry", "subscription_change", "support_ticket", "general")


class EmailNotifier:
    """
    Transactional email. Messages are logged, not delivered.
    """

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        type: str = "general",
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        if not to or not subject or not body:
            raise ValueError("Missing required fields: to, subject, body")
        if type not in EMAIL_TYPES:
            raise ValueError(f"Unknown email type: {type}")

        logger.info(f"Sending {type} email to {to}")
        logger.info(f"Subject: {subject}")
        logger.debug(f"Body: {body}")

        return {
            "success": True,
            "message": "Email notification logged successfully",
            "details": {
                "to": to,
                "subject": subject,
                "type": type,
                "timestamp": (now or datetime.now(timezone.utc)).isoformat(),
            },
        }
