"""
Identity-matching provider gateway.

``verify(id_number, photo)`` returns an ``IdentityMatch``. ``confidence`` is
``None`` when the provider matched the record but could not score the photo;
the verification machine routes that case to manual review.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

import requests
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """Raised when the provider cannot be reached or rejects the call."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)


@dataclass
class IdentityMatch:
    confidence: Optional[float]
    reference_id: Optional[str] = None
    message: str = ""
    raw: Dict[str, Any] = field(default_factory=dict)


class IdentityProvider:
    def verify(self, id_number: str, photo: str) -> IdentityMatch:
        raise NotImplementedError


class YouVerifyProvider(IdentityProvider):
    """YouVerify NIN + selfie adapter."""

    def __init__(self, api_token: str = None, base_url: str = None, timeout: int = None):
        self.api_token = api_token or settings.YOUVERIFY_API_TOKEN
        self.base_url = (base_url or settings.YOUVERIFY_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS

    def verify(self, id_number: str, photo: str) -> IdentityMatch:
        url = f"{self.base_url}/v2/identities/verifications/ng/nin"
        payload = {
            "id": id_number,
            "isSubjectConsent": True,
            "validations": {"selfie": {"image": photo}},
        }
        headers = {"Content-Type": "application/json", "token": self.api_token}

        try:
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
            body = response.json()
        except requests.exceptions.Timeout:
            logger.warning("YouVerify timed out")
            raise IdentityProviderError("Identity provider timed out")
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning("YouVerify request error: %s", e)
            raise IdentityProviderError("Identity provider unavailable")

        if response.status_code >= 500:
            raise IdentityProviderError(
                body.get("message") or "Identity provider error",
                status_code=response.status_code,
            )

        data = body.get("data") or {}
        selfie = (data.get("validations") or {}).get("selfie") or {}
        confidence = selfie.get("confidence")

        if not response.ok or not data:
            # Record not found or rejected: a scored failure, not an outage.
            confidence = 0.0
        elif selfie.get("match") is False and confidence is None:
            confidence = 0.0

        return IdentityMatch(
            confidence=float(confidence) if confidence is not None else None,
            reference_id=data.get("id"),
            message=body.get("message", ""),
            raw={
                "status_code": response.status_code,
                "has_data": bool(data),
                "selfie_match": selfie.get("match"),
            },
        )


def get_identity_provider() -> IdentityProvider:
    """Instantiate the provider configured by IDENTITY_PROVIDER_CLASS."""
    return import_string(settings.IDENTITY_PROVIDER_CLASS)()
