"""HTTP probes: plain status check and authenticated API call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

import httpx

from readiness.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    TransportError,
)
from readiness.models import ProbeKind, ProbeResult
from readiness.probes.base import Probe, ProbeContext, positive


def _check_range(label: str, status_range: tuple[int, int]) -> None:
    low, high = status_range
    if not 100 <= low <= high <= 599:
        raise ConfigurationError(f"{label}: invalid status range {status_range}")


@dataclass(frozen=True, kw_only=True)
class HttpStatusProbe(Probe):
    """
    Request a URL and compare the status code to the expected range.

    ``url`` may contain ``{host}``, substituted with the target host so the
    same declaration works against provisioner-supplied endpoints.
    ``also_accept`` lists codes outside the range that still prove the
    service answers (a 401 from a protected endpoint, for instance).
    """

    kind = ProbeKind.HTTP_STATUS

    url: str
    method: str = "GET"
    status_range: tuple[int, int] = (200, 399)
    also_accept: frozenset[int] = frozenset()
    timeout: float | None = None

    def describe(self) -> str:
        return self.url

    def validate(self) -> None:
        if not self.url:
            raise ConfigurationError("http-status probe requires a url")
        _check_range(self.label, self.status_range)
        positive(self.timeout, f"{self.label} timeout")

    def accepts(self, status_code: int) -> bool:
        low, high = self.status_range
        return low <= status_code <= high or status_code in self.also_accept

    def run(self, ctx: ProbeContext) -> ProbeResult:
        url = ctx.render(self.url)
        client = ctx.require_http()

        try:
            response = client.request(
                self.method, url, timeout=self.timeout or ctx.http_timeout
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"{url} timed out", details={"url": url}) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{url} unreachable: {e}", details={"url": url}) from e

        details = {"url": url, "status_code": response.status_code}
        if self.accepts(response.status_code):
            return self.success(f"{url} returned {response.status_code}", **details)
        return self.failure(
            f"{url} returned {response.status_code}, "
            f"expected {self.status_range[0]}-{self.status_range[1]}",
            **details,
        )


def _extract(payload: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts."""
    for part in path.split("."):
        if not isinstance(payload, dict):
            return None
        payload = payload.get(part)
    return payload


@dataclass(frozen=True, kw_only=True)
class AuthenticatedApiProbe(Probe):
    """
    Obtain a bearer token and use it on a follow-up call.

    401/403 from the auth endpoint raises AuthenticationError, which the
    probe boundary records as a hard failure: the service is serving but
    rejects the configured credentials.
    """

    kind = ProbeKind.AUTHENTICATED_API

    auth_url: str
    follow_url: str
    credentials: dict[str, str] = field(default_factory=dict, hash=False)
    payload_format: Literal["form", "json"] = "json"
    token_field: str = "access_token"
    follow_method: str = "GET"
    status_range: tuple[int, int] = (200, 299)
    timeout: float | None = None

    def describe(self) -> str:
        return self.follow_url

    def validate(self) -> None:
        if not self.auth_url or not self.follow_url:
            raise ConfigurationError(
                f"{self.label}: auth_url and follow_url are required"
            )
        if not self.credentials:
            raise ConfigurationError(f"{self.label}: credentials are required")
        if not self.token_field:
            raise ConfigurationError(f"{self.label}: token_field is required")
        if self.payload_format not in ("form", "json"):
            raise ConfigurationError(
                f"{self.label}: unknown payload format {self.payload_format!r}"
            )
        _check_range(self.label, self.status_range)
        positive(self.timeout, f"{self.label} timeout")

    def _authenticate(self, client: httpx.Client, url: str, timeout: float) -> str:
        body: dict[str, Any]
        if self.payload_format == "form":
            body = {"data": self.credentials}
        else:
            body = {"json": self.credentials}

        try:
            response = client.post(url, timeout=timeout, **body)
        except httpx.HTTPError as e:
            raise TransportError(
                f"Auth endpoint {url} unreachable: {e}", details={"url": url}
            ) from e

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"{url} rejected credentials ({response.status_code})",
                details={"url": url, "status_code": response.status_code},
            )
        if response.status_code != 200:
            raise TransportError(
                f"Auth endpoint {url} returned {response.status_code}",
                details={"url": url, "status_code": response.status_code},
            )

        try:
            token = _extract(response.json(), self.token_field)
        except ValueError:
            token = None
        if not token or not isinstance(token, str):
            raise TransportError(
                f"Auth response from {url} has no '{self.token_field}' field",
                details={"url": url, "status_code": response.status_code},
            )
        return token

    def run(self, ctx: ProbeContext) -> ProbeResult:
        client = ctx.require_http()
        timeout = self.timeout or ctx.http_timeout
        auth_url = ctx.render(self.auth_url)
        follow_url = ctx.render(self.follow_url)

        token = self._authenticate(client, auth_url, timeout)

        try:
            response = client.request(
                self.follow_method,
                follow_url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=timeout,
            )
        except httpx.HTTPError as e:
            raise TransportError(
                f"{follow_url} unreachable: {e}", details={"url": follow_url}
            ) from e

        details = {"url": follow_url, "status_code": response.status_code}
        low, high = self.status_range
        if low <= response.status_code <= high:
            return self.success(
                f"Authenticated {follow_url} returned {response.status_code}",
                **details,
            )
        return self.failure(
            f"Authenticated {follow_url} returned {response.status_code}",
            **details,
        )
