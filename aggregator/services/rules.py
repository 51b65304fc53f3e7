"""
Classifier Rule Tables

Ordered (pattern, result) data consumed by the classifier. Tables are plain
data so single rules can be tested and tuned without touching control flow.
Title and remarks are matched upper-cased; category text as given.
"""

import re
from typing import Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Pattern, Tuple

from ..models.catalog import Category

Rule = Tuple[Pattern, str]


class CategoryRule(NamedTuple):
    """Category chosen when the category text or the title matches."""
    category: Category
    category_text: Pattern
    title: Optional[Pattern] = None

    def matches(self, category_text: str, title: str) -> bool:
        if self.category_text.search(category_text):
            return True
        return bool(self.title and self.title.search(title))


# =============================================================================
# BLACKLIST
# =============================================================================

BANNED_CATEGORY_TEXT = re.compile(r"福利|写真|解说|伦理|测试|留言|公告|资讯|全部影片")
BANNED_TITLE = re.compile(r"AV|三级|解说")
DEFAULT_BANNED_CATEGORY_IDS: FrozenSet[int] = frozenset()


# =============================================================================
# CATEGORY (first match wins)
# =============================================================================

CATEGORY_RULES: List[CategoryRule] = [
    CategoryRule(
        Category.SPORTS,
        re.compile(r"体育|赛事|足球|篮球|NBA|F1|英超|西甲|欧冠|CBA|奥运|WWE|UFC"),
        re.compile(r"NBA|F1|CBA|VS"),
    ),
    CategoryRule(Category.ANIME, re.compile(r"动(漫|画)")),
    CategoryRule(Category.VARIETY, re.compile(r"综艺|晚会|秀|演唱会")),
    CategoryRule(Category.DOCUMENTARY, re.compile(r"记录|纪录")),
]

# Movie vs series
SERIES_KEYWORD = re.compile(r"剧")
# Movie genres that happen to contain the series keyword
SERIES_FALSE_POSITIVE = re.compile(r"剧情|喜剧|悲剧|歌剧|默剧")
MOVIE_KEYWORD = re.compile(r"片|电影|微电影")
SHORT_FILM = re.compile(r"微电影")

EPISODE_SEPARATOR = "#"
PLAY_GROUP_SEPARATOR = "$$$"
SERIES_MIN_EPISODES = 3


# =============================================================================
# TAGS
# =============================================================================

GENRE_RULES: List[Rule] = [
    (re.compile(r"动作|武侠|功夫|枪战|格斗|特工|营救"), "action"),
    (re.compile(r"犯罪|刑侦|警匪|黑帮|卧底|涉案|缉毒"), "crime"),
    (re.compile(r"科幻|魔幻|异能|太空|末日|变异|超英|漫威"), "scifi"),
    (re.compile(r"悬疑|惊悚|迷案|探案|烧脑|推理"), "mystery"),
    (re.compile(r"恐怖|惊悚|灵异|丧尸|鬼片"), "horror"),
    (re.compile(r"喜剧|搞笑|爆笑|相声|小品|脱口秀"), "comedy"),
    (re.compile(r"爱情|恋爱|甜宠|都市|言情|偶像|纯爱"), "romance"),
    (re.compile(r"战争|军旅|抗日|谍战|二战"), "war"),
    (re.compile(r"古装|宫廷|穿越|神话|历史|武侠"), "costume"),
    (re.compile(r"奇幻|仙侠|玄幻|妖魔"), "fantasy"),
    (re.compile(r"灾难|逃生|巨兽"), "disaster"),
    (re.compile(r"冒险|探险|寻宝"), "adventure"),
    (re.compile(r"纪录|记录"), "documentary"),
    (re.compile(r"短剧|微剧|爽文|赘婿"), "short_drama"),
]

SHORT_DRAMA_TAG = "short_drama"

PLATFORM_RULES: List[Rule] = [
    (re.compile(r"NETFLIX|奈飞|网飞|NF\b"), "netflix"),
    (re.compile(r"DISNEY|迪士尼"), "disney"),
    (re.compile(r"HBO"), "hbo"),
    (re.compile(r"APPLE TV|\bATV\b"), "apple_tv"),
    (re.compile(r"BILIBILI|B站"), "bilibili"),
]

# Only the first matching quality tag applies
QUALITY_RULES: List[Rule] = [
    (re.compile(r"4K|2160P|HDR"), "4k"),
    (re.compile(r"1080P|FHD|蓝光"), "1080p"),
]

# Region key from area field + category text; first match wins
REGION_RULES: List[Rule] = [
    (re.compile(r"大陆|中国|内地|国产"), "mainland"),
    (re.compile(r"香港|港剧"), "hongkong"),
    (re.compile(r"台湾|台剧"), "taiwan"),
    (re.compile(r"美国|欧美|西洋"), "western"),
    (re.compile(r"韩国|韩剧"), "korea"),
    (re.compile(r"日本|日剧"), "japan"),
    (re.compile(r"泰国|泰剧"), "thailand"),
]

REGION_LABELS_DEFAULT: Dict[str, str] = {
    "mainland": "mainland",
    "hongkong": "hk_drama",
    "taiwan": "tw_drama",
    "western": "western",
    "korea": "k_drama",
    "japan": "j_drama",
    "thailand": "th_drama",
}

REGION_LABELS_BY_CATEGORY: Dict[Category, Dict[str, str]] = {
    Category.ANIME: {
        **REGION_LABELS_DEFAULT,
        "japan": "j_anime",
        "mainland": "c_anime",
        "western": "western_anime",
    },
    Category.MOVIE: {
        **REGION_LABELS_DEFAULT,
        "hongkong": "hongkong",
        "taiwan": "taiwan",
        "korea": "korea",
        "japan": "japan",
    },
}

RECENT_TAG = "recent"


def first_match(rules: Iterable[Rule], text: str) -> Optional[str]:
    """Result of the first rule whose pattern matches, else None."""
    for pattern, result in rules:
        if pattern.search(text):
            return result
    return None


def all_matches(rules: Iterable[Rule], text: str) -> List[str]:
    """Results of every matching rule, in table order."""
    return [result for pattern, result in rules if pattern.search(text)]


def region_label(region: str, category: Category) -> str:
    labels = REGION_LABELS_BY_CATEGORY.get(category, REGION_LABELS_DEFAULT)
    return labels.get(region, region)
