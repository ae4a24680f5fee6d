"""
API response schemas.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorSchema(BaseModel):
    """Pipeline error as returned by the API."""
    stage: str
    type: str
    message: str
    status_code: Optional[int] = None
    cause: Optional[Dict[str, str]] = None


class CheckpointSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cursor_id: Optional[str] = Field(None, alias="cursorId")
    last_report_date: Optional[str] = Field(None, alias="lastReportDate")


class RunStatusSchema(BaseModel):
    error: Optional[ErrorSchema] = None
    rollback_error: Optional[ErrorSchema] = None


class RunResultResponse(BaseModel):
    """Result of a triggered run."""
    run_id: Optional[str] = None
    checkpoint: Optional[CheckpointSchema] = None
    logs_processed: int = 0
    logs_fetched: int = 0
    status: RunStatusSchema = Field(default_factory=RunStatusSchema)
    started_at: datetime
    finished_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
    configured: bool
    missing_settings: List[str] = Field(default_factory=list)
    credential_cache: Dict[str, Any] = Field(default_factory=dict)
