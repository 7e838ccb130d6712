"""Runtime settings read from ``WAREHOUSE_*`` environment variables."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tunables for scheduling, matching and routing.

    Every field maps to an environment variable with the ``WAREHOUSE_``
    prefix, e.g. ``WAREHOUSE_TASK_TIMEOUT=1800``.
    """

    model_config = SettingsConfigDict(env_prefix="WAREHOUSE_", extra="ignore")

    # Host-level switches
    task_timeout: int = Field(default=3600, ge=1, description="Seconds before an unresolved task counts as timed out")
    auto_assign: bool = Field(default=True, description="Allow automatic batch assignment")
    max_concurrent_tasks: int = Field(default=100, ge=1, description="Upper bound on assigned + in-progress tasks")

    # Worker matching
    max_tasks_per_worker: int = Field(default=10, ge=1)
    skill_weight: float = Field(default=0.4, ge=0)
    workload_weight: float = Field(default=0.3, ge=0)
    location_weight: float = Field(default=0.2, ge=0)
    performance_weight: float = Field(default=0.1, ge=0)

    # Priority recalculation factor weights
    urgency_weight: float = Field(default=0.3, ge=0)
    customer_tier_weight: float = Field(default=0.2, ge=0)
    deadline_weight: float = Field(default=0.25, ge=0)
    resource_weight: float = Field(default=0.15, ge=0)
    business_impact_weight: float = Field(default=0.1, ge=0)

    # Queue monitoring
    queue_warning_threshold: int = Field(default=100, ge=1)

    # Routing
    average_speed: float = Field(default=1.5, gt=0, description="Distance units per second")
    dynamic_zone_ratio: float = Field(default=2.0, gt=0, description="Shelf/zone ratio above which dynamic picks s_shape")
    dynamic_shelf_threshold: int = Field(default=3, ge=0, description="Shelf count above which dynamic picks z_shape")

    @property
    def matcher_weights(self) -> dict[str, float]:
        return {
            "skill": self.skill_weight,
            "workload": self.workload_weight,
            "location": self.location_weight,
            "performance": self.performance_weight,
        }

    @property
    def priority_factors(self) -> dict[str, float]:
        return {
            "urgency": self.urgency_weight,
            "customer_tier": self.customer_tier_weight,
            "deadline_proximity": self.deadline_weight,
            "resource_availability": self.resource_weight,
            "business_impact": self.business_impact_weight,
        }


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
