from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from ..models.results import ProviderFailed, ProviderResult
from ..providers.base import Provider

logger = logging.getLogger(__name__)


def applicable(providers: Sequence[Provider], domain: Optional[str]) -> list[Provider]:
    return [p for p in providers if p.target_kind != "domain" or domain]


async def fan_out(url: str, domain: Optional[str], providers: Sequence[Provider]) -> dict[str, ProviderResult]:
    """Run every applicable provider concurrently and wait for all of them.

    Domain-based providers are left out of the bag entirely when no domain
    could be derived. A provider that raises is recorded as failed; its
    siblings' results are kept.
    """
    selected = applicable(providers, domain)
    if not selected:
        return {}

    targets = [domain if p.target_kind == "domain" else url for p in selected]
    settled = await asyncio.gather(
        *(p.analyze(target) for p, target in zip(selected, targets)),
        return_exceptions=True,
    )

    results: dict[str, ProviderResult] = {}
    for provider, outcome in zip(selected, settled):
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            logger.warning("provider raised", extra={"provider": provider.name, "error": repr(outcome)})
            results[provider.name] = ProviderFailed(reason=str(outcome) or type(outcome).__name__)
        else:
            results[provider.name] = outcome
    logger.info(
        "fan-out settled",
        extra={"url": url, "statuses": {name: r.status for name, r in results.items()}},
    )
    return results
