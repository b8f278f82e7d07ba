"""Loading contributions advertised through entry points.

Installed packages list routers, middleware, error handlers and lifespan
hooks under the ``rollcall.*`` groups in their packaging metadata. A
contribution that fails to import is logged and skipped so one broken
optional package does not keep the registry from starting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Any

logger = logging.getLogger(__name__)

GROUP_ROUTERS = "rollcall.routers"
GROUP_MIDDLEWARE = "rollcall.middleware"
GROUP_ERROR_HANDLERS = "rollcall.error_handlers"
GROUP_LIFESPAN = "rollcall.lifespan"


@dataclass(frozen=True, slots=True)
class DiscoveredContribution:
    """A loaded entry point: its name, group and the object it points at."""

    name: str
    group: str
    value: Any


def discover(
    group: str, *, exclude_names: frozenset[str] = frozenset()
) -> list[DiscoveredContribution]:
    """Load every entry point of ``group`` not named in ``exclude_names``.

    Returns:
        Loaded contributions ordered by entry point name.
    """
    found: list[DiscoveredContribution] = []
    for ep in sorted(entry_points(group=group), key=lambda e: e.name):
        if ep.name in exclude_names:
            logger.debug("entry_point_excluded", extra={"group": group, "entry_point": ep.name})
            continue
        try:
            value = ep.load()
        except Exception:
            logger.exception(
                "entry_point_load_failed", extra={"group": group, "entry_point": ep.name}
            )
            continue
        found.append(DiscoveredContribution(ep.name, group, value))

    logger.info(
        "entry_points_discovered",
        extra={"group": group, "entry_points": [c.name for c in found]},
    )
    return found
