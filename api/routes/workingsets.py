from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from help_webapp.workingsets import ResourceRef, ResourceTree, WorkingSet, WorkingSetManager, urlcodec
from api.dependencies import get_manager

router = APIRouter(prefix="/workingsets", tags=["workingsets"])


class ElementIn(BaseModel):
    toc_href: str
    topic_index: Optional[int] = None


class WorkingSetIn(BaseModel):
    name: str
    elements: List[ElementIn] = []


class ElementsIn(BaseModel):
    elements: List[ElementIn] = []


class CurrentIn(BaseModel):
    name: str = ""


def _element_out(element: ResourceRef) -> dict:
    return {
        "kind": element.kind.value,
        "toc_href": element.toc.href,
        "href": element.href,
        "label": element.label,
        "url": urlcodec.help_url(element.href),
    }


def _working_set_out(working_set: WorkingSet) -> dict:
    return {
        "name": working_set.name,
        "scope_query": f"workingSet={urlcodec.encode(working_set.name) or ''}",
        "elements": [_element_out(e) for e in working_set.elements],
    }


def _state_out(manager: WorkingSetManager, persisted: Optional[bool] = None) -> dict:
    body = {
        "current": manager.current_working_set,
        "working_sets": [_working_set_out(ws) for ws in manager.get_working_sets()],
        "warnings": [{"kind": w.kind.value, "message": w.message} for w in manager.warnings],
    }
    if persisted is not None:
        body["persisted"] = persisted
    return body


def _build_elements(tree: ResourceTree, elements: List[ElementIn]) -> List[ResourceRef]:
    refs = []
    for element in elements:
        toc = tree.find_container(element.toc_href)
        if toc is None:
            raise HTTPException(status_code=404, detail=f"Toc not found: {element.toc_href}")
        if element.topic_index is None:
            refs.append(ResourceRef.container(toc))
            continue
        topic = tree.find_item(toc.href, element.topic_index)
        if topic is None:
            raise HTTPException(
                status_code=404,
                detail=f"Topic not found: {element.toc_href} index {element.topic_index}",
            )
        refs.append(ResourceRef.item(toc, topic))
    return refs


def _require(manager: WorkingSetManager, name: str) -> WorkingSet:
    working_set = manager.get_working_set(name)
    if working_set is None:
        raise HTTPException(status_code=404, detail=f"Working set not found: {name}")
    return working_set


@router.get("")
def list_working_sets(manager: WorkingSetManager = Depends(get_manager)):
    return _state_out(manager)


@router.post("")
def create_working_set(body: WorkingSetIn, manager: WorkingSetManager = Depends(get_manager)):
    if not body.name:
        raise HTTPException(status_code=400, detail="Working set name must not be empty")
    if manager.get_working_set(body.name) is not None:
        raise HTTPException(status_code=409, detail=f"Working set already exists: {body.name}")
    working_set = manager.create_working_set(body.name, _build_elements(manager.tree, body.elements))
    persisted = manager.add_working_set(working_set)
    return _state_out(manager, persisted)


@router.put("/current")
def select_working_set(body: CurrentIn, manager: WorkingSetManager = Depends(get_manager)):
    if body.name:
        _require(manager, body.name)
    persisted = manager.set_current_working_set(body.name)
    return _state_out(manager, persisted)


@router.put("/{name}")
def update_working_set(name: str, body: ElementsIn, manager: WorkingSetManager = Depends(get_manager)):
    working_set = _require(manager, name)
    working_set.elements = _build_elements(manager.tree, body.elements)
    persisted = manager.working_set_changed(working_set)
    return _state_out(manager, persisted)


@router.delete("/{name}")
def delete_working_set(name: str, manager: WorkingSetManager = Depends(get_manager)):
    working_set = _require(manager, name)
    persisted = manager.remove_working_set(working_set)
    return _state_out(manager, persisted)
