"""Full-keyspace enumeration for KV namespaces.

Listing pages are requested one after another, each with the cursor of the
previous page, until the backend sets ``list_complete``. An empty page or a
missing cursor does not end the listing. Enumeration is bounded by a page
ceiling so a huge namespace cannot block a request indefinitely.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from storage_gateway.config import get_settings
from storage_gateway.errors import BackendFailureError, EnumerationLimitExceededError
from storage_gateway.observability import get_logger, record_keys_listed, track_backend_call

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from storage_gateway.kv.registry import NamespaceRegistry
    from storage_gateway.kv.store import KeyListResult, KVNamespace

logger = get_logger(__name__)


async def iter_key_pages(
    namespace: KVNamespace,
    page_size: int | None = None,
    max_pages: int | None = None,
) -> AsyncIterator[KeyListResult]:
    """Yield listing pages until the backend reports the listing complete.

    Callers that stop iterating early stop the enumeration; no further pages
    are requested.

    Args:
        namespace: Namespace to enumerate.
        page_size: Keys requested per page.
        max_pages: Maximum number of pages to request. None means unbounded.

    Yields:
        Each listing page, including empty ones.

    Raises:
        BackendFailureError: If a listing call fails.
        EnumerationLimitExceededError: If ``max_pages`` pages were read and the
            listing is still not complete.
    """
    cursor: str | None = None
    pages = 0

    while True:
        if max_pages is not None and pages >= max_pages:
            raise EnumerationLimitExceededError(
                f"Key enumeration exceeded {max_pages} pages",
                namespace=namespace.name,
                pages=pages,
            )

        try:
            with track_backend_call("kv", "list"):
                page = await namespace.list(cursor=cursor, limit=page_size)
        except Exception as e:
            logger.warning("kv_list_failed", namespace=namespace.name, page=pages, error=str(e))
            raise BackendFailureError(str(e), namespace=namespace.name) from e

        pages += 1
        record_keys_listed(len(page.keys), namespace.name)
        yield page

        if page.list_complete:
            return
        cursor = page.cursor


async def list_all_keys(
    registry: NamespaceRegistry,
    namespace_name: str,
    page_size: int | None = None,
    max_pages: int | None = None,
) -> list[str]:
    """Collect every key name of a namespace.

    Args:
        registry: Namespace registry.
        namespace_name: Namespace binding name.
        page_size: Keys requested per page. Defaults to ``kv.list_page_size``.
        max_pages: Page ceiling. Defaults to ``kv.max_list_pages``.

    Returns:
        All key names, in the order the backend listed them.
    """
    namespace = registry.resolve(namespace_name)
    kv_config = get_settings().kv
    page_size = page_size or kv_config.list_page_size
    max_pages = max_pages or kv_config.max_list_pages

    names: list[str] = []
    pages = 0
    async for page in iter_key_pages(namespace, page_size=page_size, max_pages=max_pages):
        pages += 1
        names.extend(key.name for key in page.keys)

    logger.info("kv_keys_enumerated", namespace=namespace_name, pages=pages, total=len(names))
    return names
