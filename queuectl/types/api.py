"""
Request and response type definitions for the command line surface.
"""

import json
from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from queuectl.constants import JobState
from queuectl.db.models import as_utc
from queuectl.errors import ValidationError


class JobSpec(BaseModel):
    """Job specification accepted by `queuectl enqueue`."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(
        default_factory=lambda: str(uuid4()),
        min_length=1,
        max_length=255,
        description="Unique job id, generated when omitted",
    )
    command: str = Field(..., min_length=1, description="Shell command to run")
    max_retries: int | None = Field(
        default=None, ge=1, description="Retry ceiling, defaults to config max_retries"
    )
    scheduled_at: datetime | None = Field(
        default=None, description="Do not run before this time"
    )

    @field_validator("command")
    @classmethod
    def command_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("command must not be blank")
        return value

    @field_validator("scheduled_at")
    @classmethod
    def scheduled_at_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    @classmethod
    def from_json(cls, raw: str) -> "JobSpec":
        """
        Parse and validate a JSON job specification.

        Args:
            raw: JSON object text, e.g. '{"id": "a", "command": "echo hi"}'.

        Returns:
            JobSpec: The validated spec.

        Raises:
            ValidationError: If the text is not a JSON object or fails
                validation.
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid job JSON: {e.msg}") from None

        if not isinstance(data, dict):
            raise ValidationError("Job specification must be a JSON object")

        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'job'}: {err['msg']}"
                for err in e.errors()
            )
            raise ValidationError(f"Invalid job specification: {problems}") from None


class JobView(BaseModel):
    """Full job details as printed by the CLI."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    command: str
    state: JobState
    attempts: int
    max_retries: int
    created_at: datetime
    updated_at: datetime
    scheduled_at: datetime | None
    last_error: str | None
    output: str | None
    locked_by: str | None
    locked_at: datetime | None

    @field_validator("created_at", "updated_at", "scheduled_at", "locked_at")
    @classmethod
    def timestamps_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)
