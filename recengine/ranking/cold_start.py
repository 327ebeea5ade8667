"""Popularity ranking for users with no signal and for anonymous trending."""

from recengine.core.schemas import ContentItem


def rank_by_popularity(items: list[ContentItem], limit: int) -> list[ContentItem]:
    """Order items by likes + saves + views, highest first.

    No decay, no recency, no personalization. The sort is stable, so equal
    totals keep their fetch order.
    """
    ranked = sorted(items, key=lambda i: i.engagement_total, reverse=True)
    return ranked[:limit]
