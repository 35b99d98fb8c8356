"""Diagnostic snapshot models."""
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class SnapshotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    assessment_id: str
    company_id: str
    full_version: int
    cycle_no: int
    segment: str
    processes: List[dict[str, Any]]
    raios_x: dict[str, Any]
    recommendations: List[dict[str, Any]]
    plan: List[dict[str, Any]]
    evidence_summary: List[dict[str, Any]]
    created_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class SnapshotVersionOut(BaseModel):
    assessment_id: str
    full_version: int
    cycle_no: int
    closed: bool
    created_at: Optional[datetime] = None


class SnapshotVersionsResponse(BaseModel):
    company_id: str
    versions: List[SnapshotVersionOut]


class BandScore(BaseModel):
    band: Optional[str] = None
    score: Optional[int] = Field(None, description="0–100 scale")


class ProcessEvolution(BaseModel):
    process_key: str
    from_: Optional[BandScore] = Field(None, alias="from")
    to: Optional[BandScore] = None
    score_delta: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class SnapshotCompareResponse(BaseModel):
    company_id: str
    from_version: int
    to_version: int
    processes: List[ProcessEvolution]
    raio_x_entered: List[str] = Field(default_factory=list)
    raio_x_left: List[str] = Field(default_factory=list)
    actions_completed_previous: int = 0
    gains_declared_previous: List[dict[str, Any]] = Field(default_factory=list)
