"""Route-interception mock for the OTP verification endpoint.

The storefront's OTP login drawer posts `{mobile, otp}` to
`/v3/userapi/otp/verification`. With the mock installed, the known test
mobile/OTP pair gets a success payload and anything else a 401, so login
flows can be exercised without sending real SMS codes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from playwright.async_api import Request

from storefront_qa.browser import Browser

logger = logging.getLogger(__name__)

OTP_ROUTE_PATTERN = "**/v3/userapi/otp/verification"


@dataclass(frozen=True)
class OtpMockConfig:
    mobile: str = "9855566677"
    otp: str = "2222"
    token: str = "mocked-otp-token-123"
    user_id: int = 9999
    user_name: str = "QA Dev"


def otp_response(payload: Mapping[str, Any] | None, config: OtpMockConfig = OtpMockConfig()) -> Tuple[int, Dict[str, Any]]:
    """Decide the mocked (status, body) for one verification request."""
    payload = payload or {}
    if str(payload.get("mobile", "")) == config.mobile and str(payload.get("otp", "")) == config.otp:
        return 200, {
            "data": {
                "token": config.token,
                "user": {"id": config.user_id, "name": config.user_name},
            },
            "message": "OTP Verified Successfully",
            "status": True,
        }
    return 401, {"message": "Invalid OTP", "status": False}


def request_payload(request: Request) -> Dict[str, Any]:
    """JSON body of an intercepted request, or {} when it has none."""
    try:
        body = request.post_data_json
    except ValueError:
        logger.warning("OTP request body is not JSON: %r", request.post_data)
        return {}
    return body if isinstance(body, dict) else {}


@dataclass
class OtpMock:
    """Installable OTP mock that remembers what it was asked."""

    config: OtpMockConfig = field(default_factory=OtpMockConfig)
    calls: List[Dict[str, Any]] = field(default_factory=list)

    def respond(self, request: Request) -> Tuple[int, Dict[str, Any]]:
        payload = request_payload(request)
        status, body = otp_response(payload, self.config)
        self.calls.append({"payload": payload, "status": status})
        logger.info("OTP verification mocked for mobile=%s -> %s", payload.get("mobile"), status)
        return status, body

    async def install(self, browser: Browser) -> None:
        await browser.mock_json_route(OTP_ROUTE_PATTERN, self.respond)

    async def uninstall(self, browser: Browser) -> None:
        await browser.unroute(OTP_ROUTE_PATTERN)
