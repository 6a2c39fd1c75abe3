"""
Email gateway client for sending emails via HTTP gateway.

Uses HMAC-SHA256 signature for request authentication.
Used for account activation, password reset and 2FA setup mail.
"""

import hashlib
import hmac
import json
import logging
from urllib.parse import urlencode

import requests

logger = logging.getLogger(__name__)


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


class EmailGatewayClient:
    """Send emails via HTTP gateway with HMAC signature verification."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str):
        """
        Initialize with gateway credentials.

        Args:
            gateway_url: Full URL to the email gateway endpoint
            api_key: API key for X-API-Key header
            hmac_secret: Secret for HMAC-SHA256 signature

        Raises:
            ValueError: If any credential is empty
        """
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret

    def _sign_and_send(self, payload: dict) -> None:
        """
        Sign payload with HMAC and send to gateway.

        Args:
            payload: Dict to send as JSON

        Raises:
            EmailGatewayError: On any failure
        """
        payload_json = json.dumps(payload, separators=(",", ":"))

        signature = hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": signature,
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=payload_json,
                headers=headers,
                timeout=10,
            )
        except (requests.exceptions.RequestException, ConnectionError) as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            response_data = response.json()
        except json.JSONDecodeError:
            logger.error(f"Email gateway returned invalid JSON: {response.text}")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error(f"Email gateway error: {error_msg}")
            raise EmailGatewayError(f"Gateway error: {error_msg}")

    def send_email(self, to: str, subject: str, body: str) -> None:
        """
        Send a plain-text email from the auth sender.

        Args:
            to: Recipient email address
            subject: Email subject line
            body: Plain text email body

        Raises:
            EmailGatewayError: On gateway failure
        """
        payload = {
            "type": "custom",
            "email": to,
            "subject": subject,
            "body": body,
            "sender": "auth",
        }
        self._sign_and_send(payload)
        logger.info(f"Email sent to {to}: {subject}")

    def send_activation_link(self, email: str, token: str, app_url: str, app_name: str) -> None:
        """Send the account activation link for a new signup."""
        query = urlencode({"email": email, "token": token})
        self.send_email(
            to=email,
            subject=f"{app_name} account activation",
            body=f"Activate your account using the following link {app_url}/activate-account?{query}",
        )

    def send_password_reset_link(self, email: str, token: str, app_url: str, app_name: str) -> None:
        """Send the password reset link."""
        query = urlencode({"token": token})
        self.send_email(
            to=email,
            subject=f"{app_name} password reset",
            body=(
                f"Reset your password using the following link {app_url}/reset-password?{query}. "
                "If you did not request this, ignore this email."
            ),
        )

    def send_two_factor_secret(self, email: str, secret: str, app_name: str) -> None:
        """Send the TOTP setup key for manual entry into an authenticator app."""
        self.send_email(
            to=email,
            subject=f"{app_name} two-factor setup key",
            body=(
                f"Your two-factor setup key is: {secret}. "
                "Enter it in your authenticator app, then confirm with a generated code."
            ),
        )
