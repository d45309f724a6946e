"""
Working-set subsystem exports.
"""

from . import urlcodec
from .manager import WorkingSetManager
from .models import (
    ResourceKind,
    ResourceRef,
    StoreWarning,
    StoreWarningKind,
    TocRecord,
    TopicRecord,
    WorkingSet,
    working_set_sort_key,
)
from .repository import InMemoryResourceTree, ResourceTree, SqlAlchemyResourceTree
from .slots import (
    ChunkedSlotStore,
    CookieSlotTransport,
    InMemorySlotTransport,
    SlotLimits,
    SlotTransport,
    parse_header,
    slots_required,
    split_into_slots,
)

__all__ = [
    "ChunkedSlotStore",
    "CookieSlotTransport",
    "InMemoryResourceTree",
    "InMemorySlotTransport",
    "ResourceKind",
    "ResourceRef",
    "ResourceTree",
    "SlotLimits",
    "SlotTransport",
    "SqlAlchemyResourceTree",
    "StoreWarning",
    "StoreWarningKind",
    "TocRecord",
    "TopicRecord",
    "WorkingSet",
    "WorkingSetManager",
    "parse_header",
    "slots_required",
    "split_into_slots",
    "urlcodec",
    "working_set_sort_key",
]
