# models/resource.py
from pydantic import BaseModel, Field, HttpUrl, field_validator
from datetime import datetime
from typing import List, Literal, Optional

ResourceType = Literal["document", "video", "link", "quiz"]
ResourceDifficulty = Literal["beginner", "intermediate", "advanced"]


class ResourceMetadata(BaseModel):
    duration: Optional[float] = Field(None, ge=0)  # seconds, for videos
    fileSize: Optional[int] = Field(None, ge=0)  # bytes, for documents
    pageCount: Optional[int] = Field(None, ge=0)
    author: Optional[str] = None
    publishedDate: Optional[datetime] = None
    language: str = "en"


def _clean_tags(tags):
    if tags is None:
        return tags
    cleaned = [tag.strip() for tag in tags]
    if any(not tag for tag in cleaned):
        raise ValueError("Tag cannot be empty")
    return cleaned


class ResourceCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=1, max_length=2000)
    type: ResourceType
    url: HttpUrl
    category: str = Field(..., min_length=1)
    tags: List[str] = []
    isPublic: bool = True
    difficulty: ResourceDifficulty = "intermediate"
    metadata: ResourceMetadata = ResourceMetadata()

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, tags):
        return _clean_tags(tags)


class ResourceUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    type: Optional[ResourceType] = None
    url: Optional[HttpUrl] = None
    category: Optional[str] = Field(None, min_length=1)
    tags: Optional[List[str]] = None
    isPublic: Optional[bool] = None
    difficulty: Optional[ResourceDifficulty] = None
    metadata: Optional[ResourceMetadata] = None

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, tags):
        return _clean_tags(tags)
