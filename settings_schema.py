from typing import Literal

from pydantic import BaseModel, Field, ValidationError


class AnalyticsSettings(BaseModel):
    db_path: str = "analytics.db"
    fitness_level: Literal["beginner", "intermediate", "advanced"] | None = None
    available_time: int | None = Field(default=None, gt=0)
    history_days: int = Field(default=30, gt=0)
    recovery_window_days: int = Field(default=14, gt=0)
    timezone: Literal["UTC"] = "UTC"
    max_recommendations: int = Field(default=5, ge=1, le=5)


def validate_settings(data: dict) -> AnalyticsSettings:
    try:
        return AnalyticsSettings(**data)
    except ValidationError as e:
        raise ValueError(str(e))
