from __future__ import annotations

import os
from functools import lru_cache

from fastapi import Depends, Request, Response

from help_webapp.workingsets import (
    CookieSlotTransport,
    ResourceTree,
    SlotLimits,
    SqlAlchemyResourceTree,
    WorkingSetManager,
)
from help_webapp.workingsets.slots import DEFAULT_TTL


@lru_cache(maxsize=None)
def get_tree(lang: str = "en") -> ResourceTree:
    db_url = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./data/help.db")
    return SqlAlchemyResourceTree(db_url, locale=lang)


@lru_cache(maxsize=1)
def get_limits() -> SlotLimits:
    return SlotLimits(
        max_slots=int(os.getenv("WSET_MAX_SLOTS", "15")),
        slot_capacity=int(os.getenv("WSET_SLOT_CAPACITY", "4096")),
        slot_name_prefix=os.getenv("WSET_COOKIE_PREFIX", "wset"),
        ttl=int(os.getenv("WSET_COOKIE_TTL", str(DEFAULT_TTL))),
    )


def get_manager(
    request: Request,
    response: Response,
    lang: str = "en",
    tree: ResourceTree = Depends(get_tree),
    limits: SlotLimits = Depends(get_limits),
) -> WorkingSetManager:
    """One manager per request; cookies written by it land on this response."""
    transport = CookieSlotTransport(request, response, prefix=limits.slot_name_prefix)
    return WorkingSetManager(tree, transport, limits=limits)
