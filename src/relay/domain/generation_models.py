from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ArtifactType(str, Enum):
    BLUEPRINT = "blueprint"
    ARCHITECTURE = "architecture"
    GUIDE = "guide"
    TASKS = "tasks"


Role = Literal["user", "model"]


@dataclass(frozen=True)
class Turn:
    """One role-tagged entry of a session's conversation history."""

    role: Role
    text: str


@dataclass(frozen=True)
class ModelConfig:
    """Sampling parameters sent with a generation request."""

    temperature: float
    top_k: int
    top_p: float
    max_output_tokens: int


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserAnswers(_CamelModel):
    project_name: str = ""
    project_overview: str = ""
    core_features: str = ""
    ui_ux: str = ""
    tech_architecture: str = ""
    additional_requirements: str = ""


class GenerateRequest(_CamelModel):
    user_answers: UserAnswers
    session_id: Optional[str] = None
    previous_context: Optional[str] = None
    options: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
    code: Optional[str] = Field(default=None, description="Machine readable code, e.g. RATE_LIMIT")
