from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from timecapsule.clock import as_utc


class CapsuleCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: Optional[str] = None
    unlock_at: datetime = Field(alias="unlockDate")
    is_communal: bool = Field(False, alias="isCommunal")


class CapsuleUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    is_communal: Optional[bool] = Field(None, alias="isCommunal")


class CapsuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    creator_id: str
    title: str
    description: Optional[str] = None
    unlock_at: datetime
    is_communal: bool
    created_at: datetime

    @field_validator("unlock_at", "created_at")
    @classmethod
    def normalize_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class ContentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    capsule_id: int
    contributor_id: str
    content_type: str
    text: Optional[str] = None
    storage_key: Optional[str] = None
    sentiment_score: float
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def normalize_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class CapsuleDetailResponse(CapsuleResponse):
    status: str
    message: Optional[str] = None
    contents: List[ContentResponse] = []
    total_sentiment_score: Optional[float] = None
    average_sentiment_score: Optional[float] = None
    mood_summary: Optional[str] = None


class CapsuleListResponse(BaseModel):
    capsules: List[CapsuleResponse]


class AnalyticsResponse(BaseModel):
    total_capsules: int
    pending_capsules: int
    opened_capsules: int


class SignedUrlResponse(BaseModel):
    url: str


class MessageResponse(BaseModel):
    message: str
