"""
List-endpoint helpers.

Jira wraps listings differently per endpoint: a bare JSON array (``/field``,
``/issuetype``), a ``values`` page (``/issuetypescheme``, ``/group/member``)
or a named array (``permissionSchemes``). Callers pass the wrapper key as data
instead of re-implementing the unwrapping.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional

from .jira_client import JiraClient

DEFAULT_PAGE_SIZE = 50


def extract_items(payload: Any, wrapper_key: Optional[str] = "values") -> List[Dict[str, Any]]:
    """Return the list of objects held by a listing response."""
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict) and wrapper_key:
        items = payload.get(wrapper_key) or []
    else:
        items = []
    return [i for i in items if isinstance(i, dict)]


def fetch_items(
    client: JiraClient,
    path: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    wrapper_key: Optional[str] = "values",
) -> List[Dict[str, Any]]:
    """Single-request listing (endpoints that do not paginate)."""
    return extract_items(client.get_json(path, params=params), wrapper_key)


def iter_pages(
    client: JiraClient,
    path: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    wrapper_key: str = "values",
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Iterator[Dict[str, Any]]:
    """
    Yield every item of a ``startAt``/``maxResults`` paginated listing.

    Stops on ``isLast``, when ``total`` is reached, on an empty page, or when
    the answer carries no paging markers at all.
    """
    start_at = 0
    while True:
        query = dict(params or {})
        query["startAt"] = start_at
        query["maxResults"] = page_size
        page = client.get_json(path, params=query)
        items = extract_items(page, wrapper_key)
        yield from items

        if not isinstance(page, dict) or not items:
            return
        if page.get("isLast") is True:
            return
        start_at += len(items)
        total = page.get("total")
        if isinstance(total, int):
            if start_at >= total:
                return
        elif "isLast" not in page:
            return
