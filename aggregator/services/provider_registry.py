"""
Provider Registry

Static configuration of every upstream video-CMS feed: endpoint, category id
mapping and priority rank.
"""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..config import get_settings
from ..core.exceptions import ConfigurationError, NotFoundError
from ..core.logging import get_logger
from ..models.provider import ProviderConfig

logger = get_logger(__name__)


# Providers following the common MacCMS numbering: logical ids pass through.
MAP_STANDARD: Dict[int, int] = {
    1: 1, 2: 2, 3: 3, 4: 4, 5: 5, 6: 6, 7: 7, 8: 8, 9: 9, 10: 10, 11: 11,
    13: 13, 14: 14, 15: 15, 16: 16,
}

# Providers whose movie genres sit one id higher and whose variety/anime
# parents (3, 4) are empty shells that must point at a child category.
MAP_OFFSET: Dict[int, int] = {
    1: 6, 5: 6, 6: 7, 7: 8, 8: 9, 9: 10, 10: 11, 11: 12,
    2: 13, 13: 13, 14: 14, 15: 15, 16: 16,
    3: 25, 4: 29,
    25: 25, 26: 26, 27: 27, 28: 28, 29: 29, 30: 30, 31: 31,
}

STANDARD_HOME = {"movie_hot": 5, "tv_cn": 13, "anime": 4}

# Ordered fastest/most reliable first.
DEFAULT_PROVIDERS: List[dict] = [
    {"key": "sony", "name": "索尼资源", "endpoint": "https://sonyapi.net/api.php/provide/vod/",
     "category_map": MAP_STANDARD, "home_map": {"movie_hot": 1, "tv_cn": 13, "anime": 4}},
    {"key": "zy1080", "name": "优质资源", "endpoint": "https://api.1080zyku.com/inc/api.php/provide/vod/",
     "category_map": MAP_STANDARD, "home_map": STANDARD_HOME},
    {"key": "liangzi", "name": "量子资源", "endpoint": "https://cj.lziapi.com/api.php/provide/vod/",
     "category_map": MAP_OFFSET, "home_map": {"movie_hot": 6, "tv_cn": 13, "anime": 30}},
    {"key": "feifan", "name": "非凡资源", "endpoint": "https://cj.ffzyapi.com/api.php/provide/vod/",
     "category_map": MAP_OFFSET, "home_map": {"movie_hot": 6, "tv_cn": 13, "anime": 29}},
    {"key": "guangsu", "name": "光速资源", "endpoint": "https://api.guangsuapi.com/api.php/provide/vod/",
     "category_map": MAP_STANDARD, "home_map": STANDARD_HOME},
    {"key": "baidu", "name": "百度资源", "endpoint": "https://api.apibdzy.com/api.php/provide/vod/",
     "category_map": MAP_STANDARD, "home_map": STANDARD_HOME},
    {"key": "jinying", "name": "金鹰资源", "endpoint": "https://jyzyapi.com/provide/vod/",
     "category_map": MAP_STANDARD, "home_map": STANDARD_HOME},
    {"key": "shandian", "name": "闪电资源", "endpoint": "https://sdzyapi.com/api.php/provide/vod/",
     "category_map": MAP_STANDARD, "home_map": STANDARD_HOME},
    {"key": "yinghua", "name": "樱花资源", "endpoint": "https://m3u8.apiyhzy.com/api.php/provide/vod/",
     "category_map": MAP_STANDARD, "home_map": STANDARD_HOME},
    {"key": "hongniu", "name": "红牛资源", "endpoint": "https://www.hongniuzy2.com/api.php/provide/vod/",
     "category_map": MAP_STANDARD, "home_map": STANDARD_HOME},
    {"key": "wuxian", "name": "无线资源", "endpoint": "https://api.wuxianzy.net/api.php/provide/vod/",
     "category_map": MAP_STANDARD, "home_map": STANDARD_HOME},
    {"key": "fengchao", "name": "蜂巢资源", "endpoint": "https://api.fczy888.me/api.php/provide/vod/",
     "category_map": MAP_STANDARD, "home_map": STANDARD_HOME},
    {"key": "tianya", "name": "天涯资源", "endpoint": "https://tyyszyapi.com/api.php/provide/vod/",
     "category_map": MAP_STANDARD, "home_map": STANDARD_HOME},
]


class ProviderRegistry:
    """
    Immutable set of provider configs, ranked by priority.

    Loaded once at startup; nothing mutates it afterwards.
    """

    def __init__(self, providers: Iterable[ProviderConfig]):
        ranked = sorted(providers, key=lambda p: p.priority)
        self._providers: Dict[str, ProviderConfig] = {p.key: p for p in ranked}
        if len(self._providers) != len(ranked):
            raise ConfigurationError("Duplicate provider keys in configuration")

    @classmethod
    def from_dicts(cls, raw: List[dict]) -> "ProviderRegistry":
        """Build from plain dicts; list order is the priority when none given."""
        configs = []
        for rank, data in enumerate(raw):
            data = dict(data)
            data.setdefault("priority", rank)
            configs.append(ProviderConfig(**data))
        return cls(configs)

    @classmethod
    def from_file(cls, path: str) -> "ProviderRegistry":
        """Load provider definitions from a JSON list."""
        file_path = Path(path)
        if not file_path.exists():
            raise ConfigurationError(f"Providers file not found: {path}")
        raw = json.loads(file_path.read_text(encoding="utf-8"))
        # JSON object keys are strings; category ids are ints
        for data in raw:
            for field in ("category_map", "categoryMap"):
                if field in data:
                    data[field] = {int(k): int(v) for k, v in data[field].items()}
        return cls.from_dicts(raw)

    def get(self, key: str) -> ProviderConfig:
        provider = self._providers.get(key)
        if provider is None:
            raise NotFoundError("Provider", key)
        return provider

    def ranked(self) -> List[ProviderConfig]:
        """All providers, best rank first."""
        return list(self._providers.values())

    def keys(self) -> List[str]:
        return list(self._providers)

    def __contains__(self, key: str) -> bool:
        return key in self._providers

    def __len__(self) -> int:
        return len(self._providers)


# Singleton instance
_provider_registry: Optional[ProviderRegistry] = None


def get_provider_registry() -> ProviderRegistry:
    """Get singleton ProviderRegistry, from file when configured."""
    global _provider_registry
    if _provider_registry is None:
        settings = get_settings()
        if settings.providers_file:
            _provider_registry = ProviderRegistry.from_file(settings.providers_file)
            source = settings.providers_file
        else:
            _provider_registry = ProviderRegistry.from_dicts(DEFAULT_PROVIDERS)
            source = "builtin"
        logger.info(
            "provider_registry_loaded",
            source=source,
            providers=len(_provider_registry)
        )
    return _provider_registry
