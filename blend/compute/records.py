"""
Blend - Boundary Records

Raw rows from the profile, behaviour and trust storage collaborators are
validated here before they become core dataclasses. A row that fails
validation raises pydantic.ValidationError at the boundary and never
reaches the scoring engines.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from blend.matching.model import Pace, Profile, ProfileSnapshot, ResponseStyle, ViewAction, ViewEvent, as_utc
from blend.trust.engine import ActivityStats


# =============================================
# PROFILES
# =============================================

class ProfileRecord(BaseModel):
    id: str = Field(..., min_length=1)
    age: Optional[int] = Field(None, ge=18, le=120)
    city: str = ""
    bio: Optional[str] = None
    intent_ids: List[str] = Field(default_factory=list)
    pace_preference: Optional[Pace] = None
    response_style: Optional[ResponseStyle] = None
    photos: Optional[List[str]] = None
    virtual_only: Optional[bool] = None
    open_to_meet: bool = True
    voice_intro_url: Optional[str] = None
    updated_at: Optional[str] = None

    def to_profile(self) -> Profile:
        return Profile(
            id=self.id,
            age=self.age,
            city=self.city,
            bio=self.bio,
            intent_ids=frozenset(self.intent_ids),
            pace_preference=self.pace_preference,
            response_style=self.response_style,
            photo_count=len(self.photos) if self.photos is not None else None,
            virtual_only=self.virtual_only,
            open_to_meet=self.open_to_meet,
            has_voice_intro=bool(self.voice_intro_url),
            updated_at=self.updated_at,
        )


# =============================================
# VIEW EVENTS - profile_views rows
# =============================================

class ProfileMetadata(BaseModel):
    age: Optional[int] = None
    intent_ids: List[str] = Field(default_factory=list)
    bio_length: int = Field(0, ge=0)
    photo_count: int = Field(0, ge=0)
    has_voice_intro: bool = False
    pace_preference: Optional[Pace] = None
    response_style: Optional[ResponseStyle] = None

    def to_snapshot(self) -> ProfileSnapshot:
        return ProfileSnapshot(
            age=self.age,
            intent_ids=frozenset(self.intent_ids),
            bio_length=self.bio_length,
            photo_count=self.photo_count,
            has_voice_intro=self.has_voice_intro,
            pace_preference=self.pace_preference,
            response_style=self.response_style,
        )


class ViewEventRecord(BaseModel):
    viewer_id: str = Field(..., min_length=1)
    viewed_profile_id: str = Field(..., min_length=1)
    action: ViewAction
    dwell_time_ms: int = 0
    profile_metadata: ProfileMetadata = Field(default_factory=ProfileMetadata)
    created_at: datetime

    @field_validator("dwell_time_ms")
    @classmethod
    def clamp_dwell(cls, v: int) -> int:
        return max(0, v)

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # Rows without an offset are stored in UTC
        return as_utc(v)

    def to_event(self) -> ViewEvent:
        return ViewEvent(
            subject_user_id=self.viewer_id,
            viewed_user_id=self.viewed_profile_id,
            dwell_ms=self.dwell_time_ms,
            action=self.action,
            snapshot=self.profile_metadata.to_snapshot(),
            created_at=self.created_at,
        )


# =============================================
# TRUST - aggregated activity stats
# =============================================

class ActivityStatsRecord(BaseModel):
    dates_completed: int = Field(0, ge=0)
    dates_cancelled: int = Field(0, ge=0)
    no_shows: int = Field(0, ge=0)
    events_attended: int = Field(0, ge=0)
    events_hosted: int = Field(0, ge=0)
    vouches_received: int = Field(0, ge=0)
    vouches_given: int = Field(0, ge=0)
    reviews_received: int = Field(0, ge=0)
    average_rating: float = Field(0.0, ge=0, le=5)
    reports_received: int = Field(0, ge=0)
    reports_upheld: int = Field(0, ge=0)
    response_rate: float = Field(0.0, ge=0, le=1)
    sessions_last_30d: int = Field(0, ge=0)
    profile_completeness: float = Field(0.0, ge=0, le=100)
    photo_verified: bool = False
    id_verified: bool = False
    social_verified: bool = False
    sti_disclosures: int = Field(0, ge=0)
    days_since_sti_update: Optional[int] = Field(None, ge=0)
    consent_checklist_completed: bool = False
    days_on_platform: int = Field(0, ge=0)

    def to_stats(self) -> ActivityStats:
        return ActivityStats(**self.model_dump())
