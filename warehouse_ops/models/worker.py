"""Worker profile — a picker/operator's skills and availability."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class WorkerProfile(BaseModel):
    """Read-only skill record supplied by the HR/skills system."""

    model_config = ConfigDict(frozen=True)

    worker_id: int = Field(description="Unique worker identifier")
    name: str = Field(default="", description="Display name")
    skill_category: str = Field(description="Skill tag: picking, quality, equipment, ...")
    skill_level: int = Field(default=1, ge=1, le=5, description="Seniority level (1=trainee, 5=expert)")
    skill_score: int = Field(default=50, ge=1, le=100, description="Assessed proficiency")
    active: bool = Field(default=True, description="Only active workers are eligible for matching")
    certifications: dict[str, Any] = Field(default_factory=dict, description="Equipment licences etc.")
    last_zone_id: Optional[int] = Field(default=None, description="Zone the worker was last seen in")

    @property
    def proficiency(self) -> float:
        """Blend of level and score, in [0, 1]."""
        return (self.skill_score / 100.0 + self.skill_level / 5.0) / 2.0

    def holds(self, certification: str) -> bool:
        return bool(self.certifications.get(certification))

    def __repr__(self) -> str:
        return (
            f"WorkerProfile(id={self.worker_id}, category={self.skill_category!r}, "
            f"level={self.skill_level}, score={self.skill_score}, active={self.active})"
        )
