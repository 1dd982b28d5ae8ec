"""
Request and response bodies.
"""
from typing import Any

from pydantic import BaseModel, Field


class PlayerRequest(BaseModel):
    name: str | None = None


class ScoreRequest(BaseModel):
    id: str = Field(min_length=1)
    # Deliberately loose: anything that is not a positive integer counts as 1
    inc: Any = None


class ResetRequest(BaseModel):
    id: str = Field(min_length=1)


class ParticipantOut(BaseModel):
    id: str
    name: str
    score: int
