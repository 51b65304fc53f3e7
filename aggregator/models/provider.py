"""
Provider Models

Upstream video-CMS feed configuration, queries and wire payloads.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProviderAction(str, Enum):
    """Provider API action (`ac` parameter)."""
    LIST = "list"
    DETAIL = "detail"


class ProviderConfig(BaseModel):
    """
    Static configuration of one upstream provider.

    Immutable; loaded once at startup by the provider registry.
    """
    key: str = Field(..., description="Stable provider key, e.g. 'feifan'")
    name: str = Field(..., description="Human readable name")
    endpoint: str = Field(..., description="Provider API base URL")
    category_map: Dict[int, int] = Field(
        default_factory=dict,
        alias="categoryMap",
        description="Logical category id -> provider-local category id",
    )
    home_map: Dict[str, int] = Field(
        default_factory=dict,
        alias="homeMap",
        description="Home section name -> provider-local category id",
    )
    priority: int = Field(..., description="Rank, lower is tried first")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def translate_category(self, category_id: int) -> int:
        """Map a logical category id to this provider's local id."""
        return self.category_map.get(category_id, category_id)


class ProviderQuery(BaseModel):
    """Logical query, rendered per provider by `to_params`."""
    action: ProviderAction = ProviderAction.DETAIL
    page: int = 1
    keyword: Optional[str] = None
    category_id: Optional[int] = None
    local_category_id: Optional[int] = Field(
        None, description="Provider-local category id, sent untranslated"
    )
    hours: Optional[int] = None
    item_ids: List[str] = Field(default_factory=list)

    def to_params(self, provider: ProviderConfig) -> Dict[str, Any]:
        """Render wire parameters for one provider."""
        params: Dict[str, Any] = {"ac": self.action.value, "pg": self.page}
        if self.keyword:
            params["wd"] = self.keyword
        if self.local_category_id is not None:
            params["t"] = self.local_category_id
        elif self.category_id is not None:
            params["t"] = provider.translate_category(self.category_id)
        if self.hours:
            params["h"] = self.hours
        if self.item_ids:
            params["ids"] = ",".join(self.item_ids)
        return params


class ProviderItem(BaseModel):
    """
    One raw list item as returned by a video-CMS feed.

    Field aliases are the upstream `vod_*` / `type_*` names.
    """
    provider_item_id: str = Field(..., alias="vod_id")
    title: str = Field(default="", alias="vod_name")
    category_id: Optional[int] = Field(None, alias="type_id")
    category_text: str = Field(default="", alias="type_name")
    playback: str = Field(default="", alias="vod_play_url")
    play_from: str = Field(default="", alias="vod_play_from")
    remarks: str = Field(default="", alias="vod_remarks")
    area: str = Field(default="", alias="vod_area")
    raw_year: str = Field(default="", alias="vod_year")
    raw_score: str = Field(default="", alias="vod_score")
    cast: str = Field(default="", alias="vod_actor")
    director: str = Field(default="", alias="vod_director")
    poster: str = Field(default="", alias="vod_pic")
    overview: str = Field(default="", alias="vod_content")
    updated_text: str = Field(default="", alias="vod_time")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator(
        "provider_item_id", "title", "category_text", "playback", "play_from",
        "remarks", "area", "raw_year", "raw_score", "cast", "director",
        "poster", "overview", "updated_text",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        # Feeds send numbers, nulls and strings interchangeably
        if value is None:
            return ""
        return str(value)

    @field_validator("category_id", mode="before")
    @classmethod
    def _coerce_category_id(cls, value: Any) -> Optional[int]:
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @property
    def year(self) -> Optional[int]:
        """Release year if the feed gave a plausible one."""
        raw = self.raw_year.strip()
        if len(raw) == 4 and raw.isdigit() and raw[:2] in ("19", "20"):
            return int(raw)
        return None

    @property
    def rating(self) -> float:
        try:
            return float(self.raw_score)
        except ValueError:
            return 0.0


class ProviderResponse(BaseModel):
    """Provider list/detail response envelope."""
    items: List[ProviderItem] = Field(default_factory=list, alias="list")
    total: int = 0
    pagecount: int = 1

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("total", "pagecount", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    @field_validator("items", mode="before")
    @classmethod
    def _coerce_items(cls, value: Any) -> Any:
        return value or []
