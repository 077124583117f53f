"""
Pydantic schemas for data validation.
Defines the catalog payload embedded by SampleFocus and the Freesound search results.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Sample(BaseModel):
    """One downloadable sample from the SampleFocus catalog."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    slug: str = ""
    mp3_url: str = Field(alias="sample_mp3_url")


class CatalogPayload(BaseModel):
    """Shape of the JSON inside the React-on-Rails component script."""
    samples: List[Sample]


class Sound(BaseModel):
    """Freesound search result."""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    duration: float = 0.0
    username: Optional[str] = None
    license: Optional[str] = None


class SearchResponse(BaseModel):
    """Freesound /search response body (only the fields we use)."""
    count: int = 0
    results: List[Sound] = []


class TokenResponse(BaseModel):
    """Freesound /oauth2/access_token response body."""
    access_token: str
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
