from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


HealthStatus = Literal["healthy", "unhealthy", "loading"]


class ServiceHealth(BaseModel):
    """Результат одной проверки сервиса. Пересчитывается каждым циклом опроса."""
    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    status: HealthStatus = "loading"
    response_time: int | None = Field(default=None, ge=0)
    error: str | None = None


class CircuitBreakerState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF-OPEN"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = value.strip().upper().replace("_", "-")
            for member in cls:
                if member.value == normalized:
                    return member
            return cls.UNKNOWN
        return None


# Флаги симуляции, которые считаются "активной симуляцией"
SUB_FLAGS: tuple[str, ...] = (
    "force_webhook_failures",
    "disable_publishing",
    "circuit_breaker_demo_mode",
    "partial_failure_mode",
    "simulate_network_delays",
)


class SimulationStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    simulation_mode_enabled: bool = False
    force_webhook_failures: bool = False
    disable_publishing: bool = False
    circuit_breaker_demo_mode: bool = False
    partial_failure_mode: bool = False
    simulate_network_delays: bool = False
    circuit_breaker_state: CircuitBreakerState = CircuitBreakerState.CLOSED
    circuit_failure_count: int = Field(default=0, ge=0)
    circuit_last_failure: datetime | None = None

    @field_validator("circuit_breaker_state", mode="before")
    @classmethod
    def _circuit_state(cls, value):
        return CircuitBreakerState.UNKNOWN if value is None else CircuitBreakerState(value)

    def active_sub_flags(self) -> list[str]:
        return [name for name in SUB_FLAGS if getattr(self, name)]
