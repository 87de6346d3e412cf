"""Catalog filter, sort and pagination pipeline.

A ``CatalogQuery`` holds what the user selected. ``build_query`` turns it into
a backend-agnostic ``BackendQuerySpec`` and ``CatalogQueryComposer.execute``
runs one count query and one data query against the record store, both on the
same filter snapshot, so the total count always describes the returned page.

The free-text search only narrows the fetched page; it never reaches the
backend and does not change the total count or page count. A search term can
therefore leave a page empty while later pages still hold matches.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from pydantic import ValidationError

from humanoidhub.backend.base import Filter, FilterOp, Order, PageRange, RecordStoreCapability
from humanoidhub.core.config import settings
from humanoidhub.core.result import Err, ErrorKind
from humanoidhub.models.catalog import CatalogPage, ModelRecord, SortKey

logger = logging.getLogger(__name__)

PAGE_SIZE = 10

SORT_ORDERS: dict[SortKey, Order] = {
    SortKey.TRENDING: Order("downloads", ascending=False),
    SortKey.MOST_DOWNLOADED: Order("downloads", ascending=False),
    SortKey.RECENTLY_ADDED: Order("created_at", ascending=False),
    SortKey.ALPHABETICAL: Order("name", ascending=True),
}


def _toggle(values: tuple[str, ...], value: str) -> tuple[str, ...]:
    if value in values:
        return tuple(v for v in values if v != value)
    return values + (value,)


@dataclass(frozen=True)
class CatalogQuery:
    """User-selected catalog parameters.

    Instances are immutable; every ``with_*`` method returns a new query.
    Changing a filter, the search text or the sort key goes back to page 1.
    """

    tags: tuple[str, ...] = ()
    licenses: tuple[str, ...] = ()
    search: str = ""
    sort: SortKey = SortKey.TRENDING
    page: int = 1

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError("page must be >= 1")

    @classmethod
    def create(
        cls,
        tags: Iterable[str] = (),
        licenses: Iterable[str] = (),
        search: str = "",
        sort: SortKey | str = SortKey.TRENDING,
        page: int = 1,
    ) -> "CatalogQuery":
        # Selections are sets; duplicates are dropped, first occurrence kept
        return cls(
            tags=tuple(dict.fromkeys(tags)),
            licenses=tuple(dict.fromkeys(licenses)),
            search=search,
            sort=SortKey(sort),
            page=page,
        )

    def with_tag_toggled(self, tag: str) -> "CatalogQuery":
        return replace(self, tags=_toggle(self.tags, tag), page=1)

    def with_license_toggled(self, license: str) -> "CatalogQuery":
        return replace(self, licenses=_toggle(self.licenses, license), page=1)

    def with_search(self, search: str) -> "CatalogQuery":
        return replace(self, search=search, page=1)

    def with_sort(self, sort: SortKey | str) -> "CatalogQuery":
        return replace(self, sort=SortKey(sort), page=1)

    def with_filters_cleared(self) -> "CatalogQuery":
        return replace(self, tags=(), licenses=(), page=1)

    def with_page(self, page: int) -> "CatalogQuery":
        return replace(self, page=page)


@dataclass(frozen=True)
class BackendQuerySpec:
    """Everything the record store needs for one catalog read."""

    table: str
    filters: tuple[Filter, ...]
    order: Order
    page_range: PageRange
    page: int
    search: str = ""
    page_size: int = field(default=PAGE_SIZE)


def build_query(query: CatalogQuery, table: Optional[str] = None) -> BackendQuerySpec:
    """Compose the backend query for ``query``.

    Tags are combined with AND (a model must carry every selected tag),
    licenses with OR, and only public models are ever returned.
    """
    filters: list[Filter] = [Filter("is_public", FilterOp.EQ, True)]
    if query.tags:
        filters.append(Filter("tags", FilterOp.CONTAINS, tuple(query.tags)))
    if query.licenses:
        filters.append(Filter("license", FilterOp.IN, tuple(query.licenses)))

    return BackendQuerySpec(
        table=table or settings.MODELS_TABLE,
        filters=tuple(filters),
        order=SORT_ORDERS[query.sort],
        page_range=PageRange(offset=(query.page - 1) * PAGE_SIZE, limit=PAGE_SIZE),
        page=query.page,
        search=query.search,
    )


def total_pages(total_count: int, page_size: int = PAGE_SIZE) -> int:
    return math.ceil(total_count / page_size) if total_count > 0 else 0


def matches_search(record: ModelRecord, search: str) -> bool:
    """Case-insensitive substring match on name or description."""
    if not search:
        return True
    needle = search.lower()
    return needle in record.name.lower() or needle in record.description.lower()


class CatalogQueryComposer:
    """Runs catalog queries against a record store."""

    def __init__(self, record_store: RecordStoreCapability):
        self.record_store = record_store

    def build_query(self, query: CatalogQuery) -> BackendQuerySpec:
        return build_query(query)

    async def execute(self, spec: BackendQuerySpec) -> CatalogPage:
        """Fetch one page and the total count.

        Never raises for backend failures: the page comes back empty with
        ``error`` set so the caller can show a message.
        """
        outcomes = await asyncio.gather(
            self.record_store.count(spec.table, spec.filters),
            self.record_store.query(spec.table, spec.filters, spec.order, spec.page_range),
            return_exceptions=True,
        )

        results = []
        for outcome in outcomes:
            if isinstance(outcome, Exception):
                logger.error(f"Record store raised during catalog query: {outcome}", exc_info=outcome)
                outcome = Err(ErrorKind.BACKEND, str(outcome) or type(outcome).__name__)
            results.append(outcome)
        count_result, rows_result = results
        if not isinstance(rows_result, Err) and not isinstance(rows_result.value, list):
            rows_result = Err(ErrorKind.BACKEND, f"query on {spec.table} returned {type(rows_result.value).__name__}")
            results[1] = rows_result

        failure = next((r for r in results if isinstance(r, Err)), None)
        if failure is not None:
            logger.error(
                "Catalog query failed",
                extra={
                    "table": spec.table,
                    "page": spec.page,
                    "filters": [f"{f.column}.{f.op.value}" for f in spec.filters],
                    "error_kind": failure.kind.value,
                    "error": failure.message,
                },
            )
            return CatalogPage(
                items=[],
                total_count=0,
                total_pages=0,
                page=spec.page,
                page_size=spec.page_size,
                loading=False,
                error=failure.message,
            )

        total_count = count_result.value
        items = []
        for row in rows_result.value:
            try:
                record = ModelRecord.from_row(row)
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed catalog row",
                    extra={"row_id": row.get("id"), "error": str(e)},
                )
                continue
            if matches_search(record, spec.search):
                items.append(record)

        logger.debug(
            "Catalog page fetched",
            extra={"page": spec.page, "total_count": total_count, "items": len(items)},
        )
        return CatalogPage(
            items=items,
            total_count=total_count,
            total_pages=total_pages(total_count, spec.page_size),
            page=spec.page,
            page_size=spec.page_size,
            loading=False,
        )

    async def fetch(self, query: CatalogQuery) -> CatalogPage:
        return await self.execute(self.build_query(query))
