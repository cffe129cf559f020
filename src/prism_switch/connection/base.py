"""Port: provider endpoint reachability."""

from __future__ import annotations

from typing import Protocol

from prism_switch.models import Provider, ReachabilityResult


class ReachabilityPort(Protocol):
    """Port for checking that a provider's base URL answers HTTP."""

    async def check(
        self,
        provider: Provider,
        *,
        timeout_seconds: float = 10.0,
    ) -> ReachabilityResult: ...
