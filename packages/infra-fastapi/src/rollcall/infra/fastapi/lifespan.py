"""Composition of ordered lifespan hooks into one FastAPI lifespan."""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager, AsyncExitStack, asynccontextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Sequence

    from rollcall.foundation.application import LifespanContribution

logger = logging.getLogger(__name__)


def _hook_name(contribution: LifespanContribution) -> str:
    hook = contribution.hook
    return f"{getattr(hook, '__module__', '?')}.{getattr(hook, '__qualname__', repr(hook))}"


def compose_lifespan(
    hooks: Sequence[LifespanContribution],
) -> Callable[[Any], AbstractAsyncContextManager[None]]:
    """Combine hooks so lower priorities start first and stop last.

    A hook that fails on startup unwinds the hooks already entered, in
    reverse order, before the error propagates.
    """
    ordered = sorted(hooks, key=lambda h: h.priority)

    @asynccontextmanager
    async def lifespan(app: Any) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for contribution in ordered:
                logger.info(
                    "lifespan_hook_entering",
                    extra={"hook": _hook_name(contribution), "priority": contribution.priority},
                )
                await stack.enter_async_context(contribution.hook(app))
            yield
            logger.info("lifespan_shutdown_started", extra={"hooks": len(ordered)})

    return lifespan
