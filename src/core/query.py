"""
Roster Query Engine - pure search/filter/sort/paginate over a record list.

compute_view() never mutates its input and has no side effects, so it is
safe to re-run on every keystroke. QueryState is immutable; every change
produces a new value through one of its with_* transitions.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

Record = Mapping[str, Any]
Accessor = Callable[[Record], Any]
FilterPredicate = Callable[[Record, Any], bool]

# Filter values that mean "no constraint"
NO_FILTER = (None, "", "all")

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def toggled(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


@dataclass(frozen=True)
class QueryCapabilities:
    """How one feature area's records are searched, filtered and sorted."""
    search_fields: Sequence[str]
    filters: Mapping[str, FilterPredicate] = field(default_factory=dict)
    accessors: Mapping[str, Accessor] = field(default_factory=dict)
    date_fields: frozenset = frozenset({"created_at", "updated_at"})
    # Fields that sort newest-first when first selected
    descending_fields: frozenset = frozenset()

    def value_of(self, record: Record, name: str) -> Any:
        accessor = self.accessors.get(name)
        if accessor is not None:
            return accessor(record)
        return record.get(name)


@dataclass(frozen=True)
class QueryState:
    search_term: str = ""
    filters: Mapping[str, Any] = field(default_factory=dict)
    sort_field: Optional[str] = None
    sort_direction: SortDirection = SortDirection.ASC
    page_size: int = 10
    current_page: int = 1

    def __post_init__(self):
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if self.current_page < 1:
            raise ValueError(f"current_page must be >= 1, got {self.current_page}")

    def with_search(self, term: str) -> "QueryState":
        term = term or ""
        if term == self.search_term:
            return self
        return replace(self, search_term=term, current_page=1)

    def with_filter(self, name: str, value: Any) -> "QueryState":
        current = self.filters.get(name)
        normalized = None if value in NO_FILTER else value
        if normalized == current:
            return self
        filters = dict(self.filters)
        if normalized is None:
            filters.pop(name, None)
        else:
            filters[name] = normalized
        return replace(self, filters=filters, current_page=1)

    def without_filters(self) -> "QueryState":
        if not self.filters and not self.search_term:
            return self
        return replace(self, filters={}, search_term="", current_page=1)

    def with_page_size(self, page_size: int) -> "QueryState":
        if page_size == self.page_size:
            return self
        return replace(self, page_size=page_size, current_page=1)

    def with_page(self, page: int) -> "QueryState":
        return replace(self, current_page=max(1, int(page)))

    def with_sort(self, sort_field: str, direction: SortDirection) -> "QueryState":
        if sort_field == self.sort_field and direction == self.sort_direction:
            return self
        return replace(self, sort_field=sort_field, sort_direction=direction, current_page=1)

    def clamp(self, total_filtered: int) -> "QueryState":
        """Pull current_page back into [1, total_pages]."""
        page = clamp_page(self.current_page, total_pages_for(total_filtered, self.page_size))
        if page == self.current_page:
            return self
        return replace(self, current_page=page)


@dataclass(frozen=True)
class RosterView:
    page: List[Record]
    total_filtered: int
    total_pages: int
    current_page: int
    start_index: int
    end_index: int


def total_pages_for(total: int, page_size: int) -> int:
    return max(1, math.ceil(total / page_size))


def clamp_page(page: int, total_pages: int) -> int:
    return min(max(1, page), max(1, total_pages))


def next_sort(state: QueryState, sort_field: str, capabilities: QueryCapabilities) -> QueryState:
    """Toggle on the active field, otherwise start ascending (or newest-first)."""
    if state.sort_field == sort_field:
        return state.with_sort(sort_field, state.sort_direction.toggled())
    if sort_field in capabilities.descending_fields:
        return state.with_sort(sort_field, SortDirection.DESC)
    return state.with_sort(sort_field, SortDirection.ASC)


def matches_search(record: Record, term: str, capabilities: QueryCapabilities) -> bool:
    needle = (term or "").strip().lower()
    if not needle:
        return True
    for name in capabilities.search_fields:
        value = capabilities.value_of(record, name)
        if value is None or value == "":
            continue
        if needle in str(value).lower():
            return True
    return False


def apply_filters(records: Iterable[Record], filters: Mapping[str, Any],
                  capabilities: QueryCapabilities) -> List[Record]:
    result = list(records)
    for name, value in filters.items():
        if value in NO_FILTER:
            continue
        predicate = capabilities.filters.get(name)
        if predicate is None:
            # Plain equality on the field itself
            result = [r for r in result if capabilities.value_of(r, name) == value]
        else:
            result = [r for r in result if predicate(r, value)]
    return result


def parse_instant(value: Any) -> datetime:
    """Parse a stored timestamp; missing or unparseable values sort as epoch zero."""
    if isinstance(value, datetime):
        parsed = value
    elif not value:
        return EPOCH
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_key(sort_field: str, capabilities: QueryCapabilities) -> Callable[[Record], Union[datetime, str]]:
    if sort_field in capabilities.date_fields:
        return lambda r: parse_instant(capabilities.value_of(r, sort_field))

    def text_key(record: Record) -> str:
        value = capabilities.value_of(record, sort_field)
        return "" if value is None else str(value).lower()

    return text_key


def sort_records(records: List[Record], state: QueryState, capabilities: QueryCapabilities) -> List[Record]:
    if not state.sort_field:
        return list(records)
    # sorted() is stable for reverse=True as well
    return sorted(
        records,
        key=sort_key(state.sort_field, capabilities),
        reverse=state.sort_direction is SortDirection.DESC,
    )


def filter_records(records: Iterable[Record], state: QueryState,
                   capabilities: QueryCapabilities) -> List[Record]:
    matched = [r for r in records if matches_search(r, state.search_term, capabilities)]
    return apply_filters(matched, state.filters, capabilities)


def compute_view(records: Iterable[Record], state: QueryState,
                 capabilities: QueryCapabilities) -> RosterView:
    """Derive the visible page for a query state."""
    filtered = sort_records(filter_records(records, state, capabilities), state, capabilities)
    total = len(filtered)
    total_pages = total_pages_for(total, state.page_size)
    page = clamp_page(state.current_page, total_pages)

    start = (page - 1) * state.page_size
    end = start + state.page_size
    return RosterView(
        page=filtered[start:end],
        total_filtered=total,
        total_pages=total_pages,
        current_page=page,
        start_index=start,
        end_index=min(end, total),
    )


def page_window(current_page: int, total_pages: int, max_visible: int = 5) -> List[Union[int, str]]:
    """Numbered page buttons with "..." gaps, always showing first and last page."""
    if total_pages <= max_visible:
        return list(range(1, total_pages + 1))

    pages: List[Union[int, str]] = [1]
    start = max(2, current_page - 1)
    end = min(total_pages - 1, current_page + 1)

    if current_page <= 2:
        end = 4
    elif current_page >= total_pages - 1:
        start = total_pages - 3

    if start > 2:
        pages.append("...")
    pages.extend(range(start, end + 1))
    if end < total_pages - 1:
        pages.append("...")
    pages.append(total_pages)
    return pages


def status_filter(record: Record, value: Any) -> bool:
    """active/inactive filter on is_active."""
    active = bool(record.get("is_active"))
    return active if value == "active" else not active


def any_status_filter(*fields: str) -> FilterPredicate:
    """Match when any of the given status fields equals the value, ignoring case."""
    def predicate(record: Record, value: Any) -> bool:
        wanted = str(value).lower()
        return any(str(record.get(name) or "").lower() == wanted for name in fields)
    return predicate


def full_name(record: Record) -> str:
    return record.get("name") or f"{record.get('first_name') or ''} {record.get('last_name') or ''}".strip()


def describe(state: QueryState) -> Dict[str, Any]:
    """Loggable summary of a query state."""
    return {
        "search": state.search_term,
        "filters": dict(state.filters),
        "sort": f"{state.sort_field}:{state.sort_direction.value}" if state.sort_field else None,
        "page": state.current_page,
        "page_size": state.page_size,
    }


def split_page(view: RosterView) -> Tuple[int, int]:
    """1-based first/last row numbers shown ("Showing 1-10 of 42")."""
    if view.total_filtered == 0:
        return 0, 0
    return view.start_index + 1, view.end_index
