from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, List, Optional

from . import urlcodec
from .models import (
    ResourceKind,
    ResourceRef,
    StoreWarning,
    StoreWarningKind,
    WorkingSet,
    working_set_sort_key,
)
from .repository import ResourceTree
from .slots import ChunkedSlotStore, SlotLimits, SlotTransport

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "|"
ELEMENT_SEPARATOR = "&"
TOPIC_MARKER = "_"


class WorkingSetManager:
    """
    Keeps the working sets of one user for the duration of a request.

    State is restored from the slot transport on construction and the whole
    collection is written back after every change, in the format
    ``current|name1&href11&href12|name2&tochref_index_``. Soft failures never
    raise; they are logged and collected in `warnings`.
    """

    def __init__(
        self,
        tree: ResourceTree,
        transport: SlotTransport,
        limits: Optional[SlotLimits] = None,
        sort_key: Callable[[WorkingSet], Any] = working_set_sort_key,
    ):
        self.tree = tree
        self.sort_key = sort_key
        self.warnings: List[StoreWarning] = []
        self._store = ChunkedSlotStore(transport, limits or SlotLimits(), self.warnings)
        self._current_working_set = ""
        self._working_sets: List[WorkingSet] = []
        self.restore()

    @property
    def current_working_set(self) -> str:
        """Name of the selected working set; empty string means all documents."""
        return self._current_working_set

    def _warn(self, kind: StoreWarningKind, message: str, detail: Optional[str] = None) -> None:
        logger.warning("%s: %s", kind.value, message)
        self.warnings.append(StoreWarning(kind=kind, message=message, detail=detail))

    # region Working set operations
    def create_working_set(self, name: str, elements: Iterable[ResourceRef]) -> WorkingSet:
        return WorkingSet(name=name, elements=list(elements))

    def get_working_set(self, name: Optional[str]) -> Optional[WorkingSet]:
        if name is None:
            return None
        for working_set in self._working_sets:
            if working_set.name == name:
                return working_set
        return None

    def get_working_sets(self) -> List[WorkingSet]:
        return list(self._working_sets)

    # Mutators return the result of save(); a duplicate add saves nothing.
    def add_working_set(self, working_set: Optional[WorkingSet]) -> bool:
        if working_set is None or self.get_working_set(working_set.name) is not None:
            return False
        self._insert(working_set)
        return self.save()

    def remove_working_set(self, working_set: WorkingSet) -> bool:
        self._working_sets = [ws for ws in self._working_sets if ws.name != working_set.name]
        return self.save()

    def set_current_working_set(self, name: Optional[str]) -> bool:
        self._current_working_set = name or ""
        return self.save()

    def working_set_changed(self, working_set: WorkingSet) -> bool:
        self._working_sets.sort(key=self.sort_key)
        return self.save()

    def _insert(self, working_set: WorkingSet) -> None:
        self._working_sets.append(working_set)
        self._working_sets.sort(key=self.sort_key)

    # endregion

    # region Persistence
    def save(self) -> bool:
        """
        Write the whole collection to the slots. Returns False when the
        serialized state does not fit; the previously stored state is kept.
        """
        return self._store.write_string(self.serialize())

    def restore(self) -> None:
        self._current_working_set = ""
        self._working_sets = []
        data = self._store.read_string()
        if data is None:
            return
        self.parse(data)

    def serialize(self) -> str:
        parts = [self._encode_field(self._current_working_set, "current working set") or ""]
        for working_set in self._working_sets:
            name = self._encode_field(working_set.name, "working set name")
            if name is None:
                continue
            parts.append(FIELD_SEPARATOR)
            parts.append(name)
            for element in working_set.elements:
                token = self._element_token(element)
                if token is None:
                    continue
                parts.append(ELEMENT_SEPARATOR)
                parts.append(token)
        return "".join(parts)

    def parse(self, data: str) -> None:
        values = data.split(FIELD_SEPARATOR)
        current = urlcodec.decode(values[0])
        if current is None:
            self._warn(StoreWarningKind.CODEC_ERROR, "Cannot decode current working set", values[0])
            current = ""
        self._current_working_set = current

        for segment in values[1:]:
            name_and_hrefs = segment.split(ELEMENT_SEPARATOR)
            name = urlcodec.decode(name_and_hrefs[0])
            if name is None:
                self._warn(StoreWarningKind.CODEC_ERROR, "Cannot decode working set name", name_and_hrefs[0])
                continue
            if self.get_working_set(name) is not None:
                logger.debug("Skipping duplicate working set %s", name)
                continue
            elements = []
            for token in name_and_hrefs[1:]:
                element = self.resolve_reference(token)
                if element is not None:
                    elements.append(element)
            self._insert(self.create_working_set(name, elements))

    # endregion

    # region References
    def resolve_reference(self, token: str) -> Optional[ResourceRef]:
        """
        Resolve a stored element token. Toc tokens are encoded hrefs; topic
        tokens are ``<encoded toc href>_<index>_``.
        """
        href = urlcodec.decode(token)
        if href is not None:
            toc = self.tree.find_container(href)
            if toc is not None:
                return ResourceRef.container(toc)
        if token.endswith(TOPIC_MARKER):
            return self._resolve_topic(token)
        if href is None:
            self._warn(StoreWarningKind.CODEC_ERROR, "Cannot decode working set element", token)
        else:
            self._warn(StoreWarningKind.UNRESOLVED_REFERENCE, f"cannot restore ws={href}", token)
        return None

    def _resolve_topic(self, token: str) -> Optional[ResourceRef]:
        body = token[:-1]
        sep = body.rfind(TOPIC_MARKER)
        if sep < 0:
            self._warn(StoreWarningKind.MALFORMED_REFERENCE, "Topic reference without index", token)
            return None
        try:
            index = int(body[sep + 1 :])
        except ValueError:
            self._warn(StoreWarningKind.MALFORMED_REFERENCE, "Topic reference with invalid index", token)
            return None

        toc_href = urlcodec.decode(body[:sep])
        if toc_href is None:
            self._warn(StoreWarningKind.CODEC_ERROR, "Cannot decode toc of topic reference", token)
            return None
        toc = self.tree.find_container(toc_href)
        topic = self.tree.find_item(toc_href, index) if toc is not None else None
        if toc is None or topic is None:
            self._warn(StoreWarningKind.UNRESOLVED_REFERENCE, f"cannot restore ws={toc_href}_{index}_", token)
            return None
        return ResourceRef.item(toc, topic)

    def _element_token(self, element: ResourceRef) -> Optional[str]:
        if element.kind == ResourceKind.TOC:
            return self._encode_field(element.toc.href, "toc href")

        # Topics are stored by their current position under the toc, matched by href.
        toc = self.tree.find_container(element.toc.href)
        siblings = self.tree.children_of(toc) if toc is not None else []
        for index, sibling in enumerate(siblings):
            if sibling.href == element.topic.href:
                toc_token = self._encode_field(element.toc.href, "toc href")
                if toc_token is None:
                    return None
                return f"{toc_token}{TOPIC_MARKER}{index}{TOPIC_MARKER}"
        self._warn(
            StoreWarningKind.UNRESOLVED_REFERENCE,
            f"Topic {element.href} is no longer part of toc {element.toc.href}; not saved",
        )
        return None

    def _encode_field(self, text: str, what: str) -> Optional[str]:
        encoded = urlcodec.encode(text)
        if encoded is None:
            self._warn(StoreWarningKind.CODEC_ERROR, f"Cannot encode {what}", text)
        return encoded

    # endregion
