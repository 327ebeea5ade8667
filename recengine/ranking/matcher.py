"""Filter chain for similar-item lookup.

Filter order:
  1. ExcludeItemFilter    - drop the reference item itself
  2. SharedSignalFilter   - keep items sharing a tag or the category
"""

import logging
from collections.abc import Callable

from recengine.core.schemas import ContentItem

logger = logging.getLogger(__name__)

# A filter is a callable that takes items and returns a subset.
Filter = Callable[[list[ContentItem]], list[ContentItem]]


class ExcludeItemFilter:
    """Remove one item by (type, id)."""

    def __init__(self, reference: ContentItem) -> None:
        self._key = (reference.type, reference.id)

    def __call__(self, items: list[ContentItem]) -> list[ContentItem]:
        return [i for i in items if (i.type, i.id) != self._key]


class SharedSignalFilter:
    """Keep items that share at least one tag (case-insensitive) or the category.

    An empty category never matches, so a reference item without tags or
    category yields nothing.
    """

    def __init__(self, reference: ContentItem) -> None:
        self._tags = {t.lower() for t in reference.tags}
        self._category = reference.category.lower().strip()

    def __call__(self, items: list[ContentItem]) -> list[ContentItem]:
        result = [i for i in items if self._matches(i)]
        excluded = len(items) - len(result)
        if excluded:
            logger.debug("SharedSignalFilter: removed %d items", excluded)
        return result

    def _matches(self, item: ContentItem) -> bool:
        if self._tags and any(t.lower() in self._tags for t in item.tags):
            return True
        return bool(self._category) and item.category.lower().strip() == self._category


def run_filter_chain(
    items: list[ContentItem],
    filters: list[Filter],
) -> list[ContentItem]:
    """Apply filters in order, returning the surviving items."""
    result = items
    for f in filters:
        result = f(result)
    return result


def similar_items(
    reference: ContentItem,
    candidates: list[ContentItem],
    limit: int,
) -> list[ContentItem]:
    """Items related to reference, newest first."""
    filters: list[Filter] = [
        ExcludeItemFilter(reference),
        SharedSignalFilter(reference),
    ]
    matched = run_filter_chain(candidates, filters)
    matched.sort(key=lambda i: i.created_at, reverse=True)
    return matched[:limit]
