"""Storefront JSON API client for API-level tests.

Wraps an httpx.AsyncClient with the suite's base headers, response logging,
bearer-token handling and a set of response validators.

Usage:
    async with StorefrontApi(config.profile.api_url, otp_base_url=config.otp_api_url) as api:
        auth = await api.verify_otp("9855566677", "2222")
        appointments = await api.get_appointments(auth)

The client never retries; a failed request surfaces immediately.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Tuple, TypeVar

import anyio
import httpx

from storefront_qa.errors import ApiError
from storefront_qa.log import meta

logger = logging.getLogger(__name__)

USER_AGENT = "YesMadam-Test-Framework/1.0"
OTP_VERIFICATION_PATH = "/v3/userapi/otp/verification"
APPOINTMENTS_PATH = "/v3/userapi/myappointments"

T = TypeVar("T")


@dataclass
class AuthResult:
    """Token and user id returned by OTP verification."""

    token: str
    user_id: str
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuthResult:
        return cls(
            token=str(data.get("message") or ""),
            user_id=str((data.get("object") or {}).get("user_id") or ""),
            raw=data,
        )

    @property
    def authorization(self) -> str:
        return f"Bearer {self.token}"


def response_body(response: httpx.Response) -> Any:
    """Decoded JSON body, or the raw text when the body is not JSON."""
    try:
        return response.json()
    except ValueError:
        return response.text


class StorefrontApi:
    """Async client for the storefront REST API."""

    def __init__(
        self,
        base_url: str,
        otp_base_url: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.otp_base_url = (otp_base_url or base_url).rstrip("/")
        self.headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        self.last_response_time_ms: int | None = None
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> StorefrontApi:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def set_auth_token(self, token: str | None) -> None:
        """Send `Authorization: Bearer <token>` on later requests (None removes it)."""
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        else:
            self.headers.pop("Authorization", None)

    def _url(self, endpoint: str, base_url: str | None = None) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{(base_url or self.base_url).rstrip('/')}/{endpoint.lstrip('/')}"

    async def request(
        self,
        method: str,
        endpoint: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
        base_url: str | None = None,
    ) -> httpx.Response:
        """Send one request and log the response; does not raise on HTTP errors."""
        url = self._url(endpoint, base_url)
        merged = {**self.headers, **(headers or {})}
        started = anyio.current_time()
        response = await self._client.request(method, url, json=json, params=params, headers=merged)
        self.last_response_time_ms = int((anyio.current_time() - started) * 1000)
        self.log_response(response, self.last_response_time_ms)
        return response

    async def get(self, endpoint: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, json: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", endpoint, json=json, **kwargs)

    async def put(self, endpoint: str, json: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", endpoint, json=json, **kwargs)

    async def patch(self, endpoint: str, json: Any = None, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", endpoint, json=json, **kwargs)

    async def delete(self, endpoint: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", endpoint, **kwargs)

    def log_response(self, response: httpx.Response, duration_ms: int) -> None:
        level = logging.INFO if response.is_success else logging.WARNING
        logger.log(
            level,
            "%s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
            extra=meta(
                method=response.request.method,
                url=str(response.request.url),
                status=response.status_code,
                duration_ms=duration_ms,
            ),
        )

    def handle_error_response(self, response: httpx.Response) -> httpx.Response:
        """Raise ApiError for any non-2xx response, else return it unchanged."""
        if not response.is_success:
            body = response_body(response)
            logger.error(
                "API error %s for %s %s: %r",
                response.status_code,
                response.request.method,
                response.request.url,
                body,
            )
            raise ApiError(
                method=response.request.method,
                url=str(response.request.url),
                status=response.status_code,
                body=body,
            )
        return response

    # Storefront operations

    async def authenticate(self, email: str, password: str, endpoint: str = "/auth/login") -> str:
        """Log in with email/password and keep the returned token for later calls."""
        response = self.handle_error_response(
            await self.post(endpoint, json={"email": email, "password": password})
        )
        body = response_body(response)
        token = body.get("token") or body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise ApiError(method="POST", url=str(response.request.url), status=response.status_code, body=body)
        self.set_auth_token(token)
        return token

    async def verify_otp(self, mobile: str, otp: str) -> AuthResult:
        """POST the mobile/OTP pair; the token comes back in `message`."""
        response = self.handle_error_response(
            await self.post(OTP_VERIFICATION_PATH, json={"mobile": mobile, "otp": otp}, base_url=self.otp_base_url)
        )
        body = response_body(response)
        if not isinstance(body, dict):
            raise ApiError(method="POST", url=str(response.request.url), status=response.status_code, body=body)
        result = AuthResult.from_dict(body)
        if not result.token or not result.user_id:
            raise ApiError(method="POST", url=str(response.request.url), status=response.status_code, body=body)
        logger.info("OTP verified for user %s", result.user_id)
        return result

    async def get_appointments(self, auth: AuthResult, page: str = "0", status: str = "2") -> List[dict[str, Any]]:
        """List the user's appointments; the API returns them under `object`."""
        response = self.handle_error_response(
            await self.post(
                APPOINTMENTS_PATH,
                json={"userId": auth.user_id, "page": page, "status": status},
                headers={"Authorization": auth.authorization},
                base_url=self.otp_base_url,
            )
        )
        body = response_body(response)
        appointments = body.get("object") if isinstance(body, dict) else None
        if not isinstance(appointments, list):
            raise ApiError(method="POST", url=str(response.request.url), status=response.status_code, body=body)
        return appointments

    async def cleanup_resources(self, endpoints: Iterable[str]) -> List[str]:
        """DELETE each endpoint; returns the ones that could not be deleted."""
        failed: List[str] = []
        for endpoint in endpoints:
            try:
                self.handle_error_response(await self.delete(endpoint))
            except (ApiError, httpx.HTTPError) as exc:
                logger.warning("Cleanup of %s failed: %s", endpoint, exc)
                failed.append(endpoint)
        return failed

    # Validators

    @staticmethod
    def validate_status_code(response: httpx.Response, expected: int | Iterable[int] = 200) -> None:
        allowed = {expected} if isinstance(expected, int) else set(expected)
        if response.status_code not in allowed:
            raise AssertionError(
                f"Expected status {sorted(allowed)}, got {response.status_code}: {response_body(response)!r}"
            )

    @staticmethod
    def validate_response_time(duration_ms: int, max_ms: int = 5000) -> None:
        if duration_ms > max_ms:
            raise AssertionError(f"Response took {duration_ms}ms, limit is {max_ms}ms")

    @staticmethod
    def validate_response_headers(response: httpx.Response, expected: Mapping[str, str | None]) -> None:
        """Each header must be present; a non-None value must also be contained in it."""
        for name, value in expected.items():
            actual = response.headers.get(name)
            if actual is None:
                raise AssertionError(f"Missing response header {name!r}")
            if value is not None and value not in actual:
                raise AssertionError(f"Header {name!r} is {actual!r}, expected it to contain {value!r}")

    @staticmethod
    def validate_required_fields(data: Mapping[str, Any], fields: Iterable[str]) -> None:
        """Dotted names reach into nested objects, e.g. `object.user_id`."""
        for dotted in fields:
            current: Any = data
            for part in dotted.split("."):
                if not isinstance(current, Mapping) or part not in current:
                    raise AssertionError(f"Required field {dotted!r} missing from response")
                current = current[part]

    @staticmethod
    def validate_field_types(data: Mapping[str, Any], schema: Mapping[str, type | Tuple[type, ...]]) -> None:
        for name, expected_type in schema.items():
            if name not in data:
                raise AssertionError(f"Field {name!r} missing from response")
            if not isinstance(data[name], expected_type):
                raise AssertionError(
                    f"Field {name!r} is {type(data[name]).__name__}, expected {expected_type}"
                )

    @staticmethod
    async def measure_response_time(call: Callable[[], Awaitable[T]]) -> Tuple[T, int]:
        """Await call() and return (result, elapsed milliseconds)."""
        started = anyio.current_time()
        result = await call()
        return result, int((anyio.current_time() - started) * 1000)
