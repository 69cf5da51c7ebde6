"""
TOTP two-factor authentication with one-time backup codes.
"""

import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pyotp

from valeris.app.common.errors import NotFoundError
from valeris.app.common.supabase_client import first_row, get_client

logger = logging.getLogger(__name__)

ISSUER = "Valeris"
BACKUP_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_secret() -> str:
    """32-character base32 TOTP secret."""
    return pyotp.random_base32(length=32)


def provisioning_uri(email: str, secret: str) -> str:
    return pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=ISSUER)


def generate_backup_codes(count: int = 10, length: int = 8) -> List[str]:
    return [
        "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(length))
        for _ in range(count)
    ]


def verify_totp(secret: str, code: str) -> bool:
    if not secret or not code:
        return False
    return pyotp.TOTP(secret).verify(code.strip(), valid_window=1)


def backup_codes_text(codes: List[str]) -> str:
    lines = [
        f"{ISSUER} two-factor backup codes",
        f"Generated: {datetime.now(timezone.utc).date().isoformat()}",
        "",
        *codes,
        "",
        "Each code can be used once. Store them somewhere safe.",
    ]
    return "\n".join(lines)


class TwoFactorService:
    def __init__(self, client=None):
        self.client = client or get_client()

    def status(self, user_id: str) -> Optional[Dict[str, Any]]:
        return first_row(
            self.client.table("two_factor_auth")
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )

    def setup(self, email: str) -> Dict[str, Any]:
        secret = generate_secret()
        return {"secret": secret, "otpauth_uri": provisioning_uri(email, secret)}

    def enable(self, user_id: str, secret: str, code: str) -> List[str]:
        if not verify_totp(secret, code):
            raise ValueError("Invalid verification code")

        codes = generate_backup_codes()
        self.client.table("two_factor_auth").upsert(
            {
                "user_id": user_id,
                "enabled": True,
                "secret": secret,
                "backup_codes": codes,
                "enabled_at": datetime.now(timezone.utc).isoformat(),
            },
            on_conflict="user_id",
        ).execute()
        logger.info(f"2FA enabled for {user_id}")
        return codes

    def disable(self, user_id: str) -> None:
        self.client.table("two_factor_auth").update(
            {"enabled": False, "secret": None, "backup_codes": []}
        ).eq("user_id", user_id).execute()
        logger.info(f"2FA disabled for {user_id}")

    def verify(self, user_id: str, code: str) -> bool:
        """Accept a current TOTP code or burn one unused backup code."""
        row = self.status(user_id)
        if row is None or not row.get("enabled"):
            raise NotFoundError("Two-factor authentication is not enabled")

        if verify_totp(row.get("secret"), code):
            return True

        normalized = (code or "").strip().upper()
        codes = list(row.get("backup_codes") or [])
        if normalized in codes:
            codes.remove(normalized)
            self.client.table("two_factor_auth").update({"backup_codes": codes}).eq(
                "user_id", user_id
            ).execute()
            logger.info(f"Backup code used by {user_id}, {len(codes)} left")
            return True
        return False
