# =============================================================================
# BODY MANUAL BACKEND - DATABASE MODELS
# =============================================================================
"""
Pydantic models for database entities.
Used for boundary validation and type safety across the services.
"""

from datetime import datetime, date
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


# =============================================================================
# ENUMS
# =============================================================================

class BodyArea(str, Enum):
    """The eight fixed body areas, in catalog order."""
    NERVENSYSTEM = "nervensystem"
    HORMONE = "hormone"
    ZIRKADIAN = "zirkadian"
    MIKROBIOM = "mikrobiom"
    BEWEGUNG = "bewegung"
    FASTEN = "fasten"
    KAELTE = "kaelte"
    LICHT = "licht"


class DifficultyLevel(str, Enum):
    BEGINNER = "Anfänger"
    ADVANCED = "Fortgeschritten"
    EXPERT = "Experte"


class MoodRating(str, Enum):
    VERY_BAD = "sehr_schlecht"
    BAD = "schlecht"
    NEUTRAL = "neutral"
    GOOD = "gut"
    VERY_GOOD = "sehr_gut"


class EnergyRating(str, Enum):
    VERY_LOW = "sehr_niedrig"
    LOW = "niedrig"
    NORMAL = "normal"
    HIGH = "hoch"
    VERY_HIGH = "sehr_hoch"


class AchievementCategory(str, Enum):
    CONSISTENCY = "consistency"
    MASTERY = "mastery"
    MILESTONE = "milestone"
    COMMUNITY = "community"
    SPECIAL = "special"


class AchievementRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class StreakType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BODY_AREA = "body_area"
    EXERCISE_SPECIFIC = "exercise_specific"


class MasteryLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


# =============================================================================
# COMPLETION MODELS
# =============================================================================

class BiometricSnapshot(BaseModel):
    """Biometric readings captured around an exercise session."""
    model_config = ConfigDict(populate_by_name=True)

    heart_rate: Optional[float] = Field(default=None, ge=30, le=220, alias="heartRate")
    hrv: Optional[float] = Field(default=None, ge=0, le=200)
    stress_level: Optional[float] = Field(default=None, ge=0, le=100, alias="stressLevel")
    sleep_quality: Optional[float] = Field(default=None, ge=0, le=100, alias="sleepQuality")
    recovery_score: Optional[float] = Field(default=None, ge=0, le=100, alias="recoveryScore")
    timestamp: datetime
    source: Literal["manual", "wearable", "app"] = "manual"
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    confidence: Optional[float] = Field(default=None, ge=0, le=1)


class ExerciseCompletion(BaseModel):
    """Exercise completion request, validated once at the boundary."""
    exercise_id: str = Field(..., min_length=1)
    body_area: BodyArea
    duration_minutes: Optional[int] = Field(default=None, ge=1, le=300)
    difficulty_level: DifficultyLevel = DifficultyLevel.BEGINNER
    session_notes: Optional[str] = Field(default=None, max_length=1000)
    mood: Optional[MoodRating] = None
    energy_level: Optional[EnergyRating] = None
    biometric_data: Optional[BiometricSnapshot] = None


class CompletionRecord(ExerciseCompletion):
    """One finished exercise session as stored."""
    id: str
    user_id: str
    completed_at: datetime
    created_at: datetime


class TimeRange(BaseModel):
    """Inclusive completion-time window; either bound may be open."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None


# =============================================================================
# STREAK MODELS
# =============================================================================

class StreakState(BaseModel):
    """Per-user streak counter."""
    user_id: str
    streak_type: StreakType = StreakType.DAILY
    current_count: int = Field(default=0, ge=0)
    best_count: int = Field(default=0, ge=0)
    last_activity_date: Optional[date] = None
    started_at: datetime
    is_active: bool = False


# =============================================================================
# ACHIEVEMENT CRITERIA
# =============================================================================

class _CriteriaBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target: int = Field(..., ge=1)
    timeframe: Optional[Literal["daily", "weekly", "monthly", "all_time"]] = None


class TotalSessionsCriteria(_CriteriaBase):
    type: Literal["total_sessions"] = "total_sessions"


class StreakCriteria(_CriteriaBase):
    type: Literal["streak"] = "streak"


class BodyAreaMasteryCriteria(_CriteriaBase):
    type: Literal["body_area_mastery"] = "body_area_mastery"
    body_area: BodyArea = Field(..., alias="bodyArea")


class ConsistencyConditions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    perfect_week: bool = Field(default=False, alias="perfectWeek")
    all_body_areas: bool = Field(default=False, alias="allBodyAreas")


class ConsistencyCriteria(_CriteriaBase):
    type: Literal["consistency"] = "consistency"
    conditions: ConsistencyConditions = Field(default_factory=ConsistencyConditions)


class MilestoneConditions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    joined_community: bool = Field(default=False, alias="joinedCommunity")
    shared_progress: bool = Field(default=False, alias="sharedProgress")


class MilestoneCriteria(_CriteriaBase):
    type: Literal["milestone"] = "milestone"
    conditions: MilestoneConditions = Field(default_factory=MilestoneConditions)


AchievementCriteria = Annotated[
    Union[
        TotalSessionsCriteria,
        StreakCriteria,
        BodyAreaMasteryCriteria,
        ConsistencyCriteria,
        MilestoneCriteria,
    ],
    Field(discriminator="type"),
]

criteria_adapter: TypeAdapter[AchievementCriteria] = TypeAdapter(AchievementCriteria)


# =============================================================================
# ACHIEVEMENT MODELS
# =============================================================================

class AchievementDefinition(BaseModel):
    """Static catalog entry."""
    id: str
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    category: AchievementCategory
    criteria: AchievementCriteria
    badge_icon: str = ""
    points: int = Field(default=0, ge=0, le=1000)
    rarity: AchievementRarity = AchievementRarity.COMMON
    created_at: Optional[datetime] = None


class AchievementAward(BaseModel):
    """Record that a user satisfied a definition."""
    id: int
    user_id: str
    achievement_id: str
    earned_at: datetime
    progress_snapshot: dict = Field(default_factory=dict)


class AwardedAchievement(AchievementAward):
    """Award joined with its definition."""
    achievement: AchievementDefinition


class AchievementProgress(BaseModel):
    """Progress of a user towards one achievement."""
    achievement_id: str
    achievement: AchievementDefinition
    current_progress: int
    target_progress: int
    progress_percentage: float = Field(..., ge=0, le=100)
    is_completed: bool


class AchievementCheckResult(BaseModel):
    """
    Outcome of an achievement check.

    `awarded` is empty both when nothing new was earned and when the check
    failed; `failed` tells the two apart.
    """
    awarded: list[AchievementDefinition] = Field(default_factory=list)
    failed: bool = False
    error: Optional[str] = None


class AchievementCount(BaseModel):
    name: str
    count: int


class AchievementStats(BaseModel):
    """Catalog-wide award statistics."""
    total_definitions: int = 0
    total_awards: int = 0
    most_awarded: Optional[AchievementCount] = None
    rare_awards: list[AchievementCount] = Field(default_factory=list)


# =============================================================================
# PROGRESS MODELS
# =============================================================================

class BodyAreaStats(BaseModel):
    """Derived per-body-area statistics."""
    body_area: BodyArea
    total_sessions: int = 0
    total_minutes: int = 0
    average_session_duration: float = 0.0
    consistency_score: float = Field(default=0.0, ge=0, le=1)
    last_practiced: datetime
    favorite_exercises: list[str] = Field(default_factory=list)
    mastery_level: MasteryLevel = MasteryLevel.BEGINNER


class ProgressSnapshot(BaseModel):
    """Aggregate progress for a user."""
    user_id: str
    total_sessions: int = 0
    total_minutes: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    body_area_stats: list[BodyAreaStats] = Field(default_factory=list)
    recent_achievements: list[AwardedAchievement] = Field(default_factory=list)
    weekly_goal: int = 7
    weekly_progress: int = 0
    last_activity: Optional[datetime] = None
