"""
Metadata Registry Models

Search candidates and full detail records from TMDB.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

MAX_CAST = 8
MAX_DIRECTORS = 2


def _year_of(date_text: Optional[str]) -> Optional[int]:
    if date_text and len(date_text) >= 4 and date_text[:4].isdigit():
        return int(date_text[:4])
    return None


class RegistryCandidate(BaseModel):
    """One `/search/multi` hit."""
    id: int
    media_type: str = Field(..., alias="mediaType", description="movie, tv or person")
    title: str = ""
    original_title: Optional[str] = Field(None, alias="originalTitle")
    release_date: Optional[str] = Field(None, alias="releaseDate")
    poster_path: Optional[str] = Field(None, alias="posterPath")
    backdrop_path: Optional[str] = Field(None, alias="backdropPath")
    overview: Optional[str] = None
    vote_average: float = Field(default=0.0, alias="voteAverage")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def year(self) -> Optional[int]:
        return _year_of(self.release_date)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RegistryCandidate":
        """Normalize a raw TMDB search result (movie and tv use different keys)."""
        return cls(
            id=data["id"],
            media_type=data.get("media_type", ""),
            title=data.get("title") or data.get("name") or "",
            original_title=data.get("original_title") or data.get("original_name"),
            release_date=data.get("release_date") or data.get("first_air_date") or None,
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
            overview=data.get("overview"),
            vote_average=data.get("vote_average") or 0.0,
        )


class RegistryDetail(BaseModel):
    """Full detail for one movie or tv show."""
    id: int
    media_type: str = Field(..., alias="mediaType")
    title: str = ""
    original_title: Optional[str] = Field(None, alias="originalTitle")
    release_date: Optional[str] = Field(None, alias="releaseDate")
    genre_ids: List[int] = Field(default_factory=list, alias="genreIds")
    genres: List[str] = Field(default_factory=list)
    cast: List[str] = Field(default_factory=list)
    directors: List[str] = Field(default_factory=list)
    companies: List[str] = Field(default_factory=list, description="Networks and production companies")
    poster_path: Optional[str] = Field(None, alias="posterPath")
    backdrop_path: Optional[str] = Field(None, alias="backdropPath")
    overview: Optional[str] = None
    vote_average: float = Field(default=0.0, alias="voteAverage")
    country_code: Optional[str] = Field(None, alias="countryCode")
    country_name: Optional[str] = Field(None, alias="countryName")
    language: Optional[str] = None
    runtime: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)

    @property
    def year(self) -> Optional[int]:
        return _year_of(self.release_date)

    @classmethod
    def from_api(cls, data: Dict[str, Any], media_type: str) -> "RegistryDetail":
        """Normalize a TMDB detail payload fetched with `append_to_response=credits`."""
        credits = data.get("credits") or {}
        crew = credits.get("crew") or []
        companies = (data.get("networks") or []) + (data.get("production_companies") or [])
        countries = data.get("production_countries") or []
        runtimes = data.get("episode_run_time") or []

        return cls(
            id=data["id"],
            media_type=media_type,
            title=data.get("title") or data.get("name") or "",
            original_title=data.get("original_title") or data.get("original_name"),
            release_date=data.get("release_date") or data.get("first_air_date") or None,
            genre_ids=[g["id"] for g in data.get("genres") or [] if "id" in g],
            genres=[g["name"] for g in data.get("genres") or [] if g.get("name")],
            cast=[c["name"] for c in (credits.get("cast") or [])[:MAX_CAST] if c.get("name")],
            directors=[
                c["name"] for c in crew if c.get("job") == "Director" and c.get("name")
            ][:MAX_DIRECTORS],
            companies=[c["name"] for c in companies if c.get("name")],
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
            overview=data.get("overview"),
            vote_average=data.get("vote_average") or 0.0,
            country_code=countries[0].get("iso_3166_1") if countries else None,
            country_name=countries[0].get("name") if countries else None,
            language=data.get("original_language"),
            runtime=data.get("runtime") or (runtimes[0] if runtimes else None),
        )
