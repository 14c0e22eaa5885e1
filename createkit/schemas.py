"""
Pydantic schemas for the CreateKit API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, StrictBool


class GenerateArticleRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    length: Optional[int] = None


class GenerateArticleResponse(BaseModel):
    success: Literal[True] = True
    article: str


class GenerateBlogTitleRequest(BaseModel):
    prompt: str = Field(..., min_length=1)


class GenerateBlogTitleResponse(BaseModel):
    success: Literal[True] = True
    blogTitle: str


class GenerateImageRequest(BaseModel):
    prompt: str = Field(..., min_length=1)
    publish: bool = False


class ImageResponse(BaseModel):
    success: Literal[True] = True
    imageUrl: str


class ResumeReviewResponse(BaseModel):
    success: Literal[True] = True
    content: str


class Creation(BaseModel):
    id: int
    user_id: str
    prompt: str
    content: str
    type: str
    publish: bool
    likes: list[str]
    created_at: datetime
    updated_at: datetime


class CreationsResponse(BaseModel):
    success: Literal[True] = True
    creations: list[Creation]


class ToggleLikeResponse(BaseModel):
    success: Literal[True] = True
    message: str


class TogglePublishRequest(BaseModel):
    creationId: Optional[int] = None
    publish: Optional[StrictBool] = None


class TogglePublishResponse(BaseModel):
    success: Literal[True] = True
    creationId: int
    publish: bool
