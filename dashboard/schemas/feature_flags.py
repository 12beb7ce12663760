from typing import Dict, Literal

from pydantic import BaseModel, StrictBool


Environment = Literal["local", "prod"]
ENVIRONMENTS: tuple[str, ...] = ("local", "prod")

# Набор флагов: ключ -> включен ли
FlagSet = Dict[str, bool]


class FlagUpdate(BaseModel):
    enabled: StrictBool


class FlagState(BaseModel):
    key: str
    enabled: bool


class ReloadResult(BaseModel):
    status: str = ""
