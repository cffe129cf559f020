"""Check whether a provider's ``ANTHROPIC_BASE_URL`` is reachable."""

from __future__ import annotations

import httpx

from prism_switch.models import Provider, ReachabilityResult


class BaseURLReachabilityChecker:
    """HEAD request against a provider base URL.

    Anything below 500 counts as reachable (auth errors and 404s still mean
    an endpoint answered). 5xx and connection errors are failures.
    Always returns a result -- never raises.
    """

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client

    async def check(
        self,
        provider: Provider,
        *,
        timeout_seconds: float = 10.0,
    ) -> ReachabilityResult:
        url = provider.base_url
        if not url.startswith(("https://", "http://")):
            return ReachabilityResult(
                success=False,
                provider_name=provider.name,
                base_url=url,
                error="Provider has no http(s) ANTHROPIC_BASE_URL to check.",
            )
        try:
            resp = await self._http.head(url, timeout=timeout_seconds)
        except httpx.ConnectError:
            return ReachabilityResult(
                success=False,
                provider_name=provider.name,
                base_url=url,
                error=f"Cannot reach {url}. Check the URL, your network, or a required proxy.",
            )
        except httpx.TimeoutException:
            return ReachabilityResult(
                success=False,
                provider_name=provider.name,
                base_url=url,
                error=f"Timeout connecting to {url}.",
            )
        except httpx.HTTPError as exc:
            return ReachabilityResult(
                success=False,
                provider_name=provider.name,
                base_url=url,
                error=f"HTTP error checking {url}: {type(exc).__name__}",
            )

        if resp.status_code < 500:
            return ReachabilityResult(
                success=True,
                provider_name=provider.name,
                base_url=url,
                status_code=resp.status_code,
            )
        return ReachabilityResult(
            success=False,
            provider_name=provider.name,
            base_url=url,
            status_code=resp.status_code,
            error=f"{url} responded with HTTP {resp.status_code}. It may be temporarily down.",
        )
