"""
Pydantic schemas for API request/response models.

Cart contents are deliberately loose here: shape and field checks belong to
the cart validator so that every cart problem maps to the same 400 response.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for a Stripe checkout session."""

    items: Optional[List[Any]] = Field(default=None, description="Cart items")
    email: Optional[str] = Field(default=None, description="Optional customer email")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"name": "Workflow Yaml Fixer Pro", "licenseType": "commercial"}],
                    "email": "buyer@example.com",
                }
            ]
        }
    }


class CreatePayPalOrderRequest(BaseModel):
    """Request schema for a PayPal order."""

    cart: Optional[List[Any]] = Field(default=None, description="Cart items")

    model_config = {
        "json_schema_extra": {
            "examples": [{"cart": [{"name": "Workflow Yaml Fixer Pro", "licenseType": "enterprise"}]}]
        }
    }


class IntentResponse(BaseModel):
    """Provider intent id (Stripe session id or PayPal order id)."""

    id: str = Field(..., description="Provider-assigned identifier")


class WebhookResponse(BaseModel):
    """Response schema for webhook acknowledgement."""

    received: bool = Field(..., description="Event was accepted")
    duplicate: Optional[bool] = Field(default=None, description="Event was seen before")

    model_config = {"json_schema_extra": {"examples": [{"received": True, "duplicate": True}]}}


class HealthResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall status")
    timestamp: str = Field(..., description="Report time (ISO 8601)")
    version: str = Field(..., description="Service version")
    environment: str = Field(..., description="Deployment environment")
    services: Dict[str, bool] = Field(..., description="Collaborator configuration presence")
