from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class ResourceKind(str, Enum):
    TOC = "toc"
    TOPIC = "topic"


class StoreWarningKind(str, Enum):
    MALFORMED_HEADER = "malformed_header"
    MISSING_SLOT = "missing_slot"
    LENGTH_MISMATCH = "length_mismatch"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    CODEC_ERROR = "codec_error"
    MALFORMED_REFERENCE = "malformed_reference"
    UNRESOLVED_REFERENCE = "unresolved_reference"


@dataclass(frozen=True)
class TocRecord:
    href: str
    label: str
    locale: str = "en"
    order_index: int = 0


@dataclass(frozen=True)
class TopicRecord:
    toc_href: str
    href: str
    label: str
    order_index: int = 0


@dataclass(frozen=True)
class ResourceRef:
    """
    A working-set element: either a whole toc or one first-level topic of a toc.
    Topics carry no stored position; the store looks it up in the live tree
    every time the working sets are saved.
    """

    kind: ResourceKind
    toc: TocRecord
    topic: Optional[TopicRecord] = None

    @classmethod
    def container(cls, toc: TocRecord) -> "ResourceRef":
        return cls(kind=ResourceKind.TOC, toc=toc)

    @classmethod
    def item(cls, toc: TocRecord, topic: TopicRecord) -> "ResourceRef":
        if topic.toc_href != toc.href:
            raise ValueError(f"Topic {topic.href} does not belong to toc {toc.href}")
        return cls(kind=ResourceKind.TOPIC, toc=toc, topic=topic)

    @property
    def href(self) -> str:
        if self.topic is not None:
            return self.topic.href
        return self.toc.href

    @property
    def label(self) -> str:
        if self.topic is not None:
            return self.topic.label
        return self.toc.label


@dataclass
class WorkingSet:
    name: str
    elements: List[ResourceRef] = field(default_factory=list)


def working_set_sort_key(working_set: WorkingSet) -> Tuple[str, str]:
    return (working_set.name.casefold(), working_set.name)


@dataclass(frozen=True)
class StoreWarning:
    kind: StoreWarningKind
    message: str
    detail: Optional[str] = None
