"""
Health report for the /health endpoint.

Reports whether each collaborator is configured. It never calls Stripe,
PayPal or the SMTP server.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from license_bridge.config import Settings, get_settings


class HealthCheck:
    """Configuration-presence health check."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def services(self) -> Dict[str, bool]:
        return {
            "stripe": self.settings.stripe_configured,
            "paypal": self.settings.paypal_configured,
            "email": self.settings.email_configured,
        }

    def report(self) -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "version": self.settings.app_version,
            "environment": self.settings.app_env,
            "services": self.services(),
        }
