from __future__ import annotations

from fastapi import APIRouter, Depends

from help_webapp.workingsets import ResourceTree
from help_webapp.workingsets.urlcodec import help_url
from api.dependencies import get_tree

router = APIRouter(prefix="/tocs", tags=["tocs"])


@router.get("")
def list_tocs(tree: ResourceTree = Depends(get_tree)):
    return [
        {
            "href": toc.href,
            "label": toc.label,
            "url": help_url(toc.href),
            "topics": [
                {"index": index, "href": topic.href, "label": topic.label, "url": help_url(topic.href)}
                for index, topic in enumerate(tree.children_of(toc))
            ],
        }
        for toc in tree.list_tocs()
    ]
