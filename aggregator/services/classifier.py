"""
Classifier

Maps one raw provider item onto a canonical category plus a tag set, or
rejects it as junk.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional, Set

from ..models.catalog import Category, Classification
from ..models.provider import ProviderItem
from . import rules


def count_episodes(playback: str) -> int:
    """Segments in the first play group of a playback descriptor."""
    if not playback:
        return 0
    first_group = playback.split(rules.PLAY_GROUP_SEPARATOR)[0]
    return len([seg for seg in first_group.split(rules.EPISODE_SEPARATOR) if seg.strip()])


def is_banned(
    item: ProviderItem,
    banned_category_ids: Iterable[int] = rules.DEFAULT_BANNED_CATEGORY_IDS,
) -> bool:
    if item.category_id is not None and item.category_id in set(banned_category_ids):
        return True
    if rules.BANNED_CATEGORY_TEXT.search(item.category_text.strip()):
        return True
    return bool(rules.BANNED_TITLE.search(item.title.strip().upper()))


def decide_category(category_text: str, title: str, playback: str) -> Category:
    """
    Category precedence: sports > anime > variety > documentary > series/movie.

    Series/movie: an explicit series keyword wins, then an explicit movie
    keyword, and only then the episode count.
    """
    for rule in rules.CATEGORY_RULES:
        if rule.matches(category_text, title):
            return rule.category

    if (
        rules.SERIES_KEYWORD.search(category_text)
        and not rules.SERIES_FALSE_POSITIVE.search(category_text)
    ):
        return Category.SERIES
    if rules.MOVIE_KEYWORD.search(category_text):
        return Category.MOVIE
    if count_episodes(playback) >= rules.SERIES_MIN_EPISODES:
        return Category.SERIES
    return Category.MOVIE


def classify(
    item: ProviderItem,
    *,
    now: Optional[datetime] = None,
    banned_category_ids: Iterable[int] = rules.DEFAULT_BANNED_CATEGORY_IDS,
) -> Optional[Classification]:
    """
    Classify a provider item.

    Args:
        item: Raw provider item
        now: Reference time for the "recent" tag (defaults to UTC now)
        banned_category_ids: Provider category ids rejected outright

    Returns:
        Classification, or None when the item is blacklisted
    """
    if is_banned(item, banned_category_ids):
        return None

    category_text = item.category_text.strip()
    title = item.title.strip().upper()
    remarks = item.remarks.strip().upper()

    category = decide_category(category_text, title, item.playback)

    combined = f"{category_text} {title} {remarks}"
    tags: Set[str] = set(rules.all_matches(rules.GENRE_RULES, combined))

    if (
        category == Category.MOVIE
        and rules.SHORT_DRAMA_TAG in tags
        and not rules.SHORT_FILM.search(category_text)
    ):
        category = Category.SERIES

    quality = rules.first_match(rules.QUALITY_RULES, combined)
    if quality:
        tags.add(quality)
    tags.update(rules.all_matches(rules.PLATFORM_RULES, combined))

    region = rules.first_match(rules.REGION_RULES, f"{item.area.strip()} {category_text}")
    if region:
        tags.add(rules.region_label(region, category))

    current_year = (now or datetime.now(timezone.utc)).year
    if item.year is not None and current_year - 1 <= item.year <= current_year:
        tags.add(rules.RECENT_TAG)

    return Classification(category=category, tags=tags)
