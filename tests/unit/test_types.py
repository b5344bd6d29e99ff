"""
Unit tests for job specification parsing.
"""

from datetime import datetime, timezone

import pytest

from queuectl.errors import ValidationError
from queuectl.types.api import JobSpec


class TestJobSpecFromJson:
    """Tests for JobSpec.from_json."""

    def test_minimal(self):
        """Test id and command are enough."""
        spec = JobSpec.from_json('{"id": "job1", "command": "echo hi"}')

        assert spec.id == "job1"
        assert spec.command == "echo hi"
        assert spec.max_retries is None
        assert spec.scheduled_at is None

    def test_generated_id(self):
        """Test a missing id is generated."""
        first = JobSpec.from_json('{"command": "true"}')
        second = JobSpec.from_json('{"command": "true"}')

        assert first.id
        assert first.id != second.id

    def test_optional_fields(self):
        """Test max_retries and scheduled_at are accepted."""
        spec = JobSpec.from_json(
            '{"id": "a", "command": "true", "max_retries": 5,'
            ' "scheduled_at": "2030-01-01T12:00:00+02:00"}'
        )

        assert spec.max_retries == 5
        assert spec.scheduled_at == datetime(2030, 1, 1, 10, 0, tzinfo=timezone.utc)

    def test_naive_scheduled_at_is_utc(self):
        """Test a timestamp without offset is read as UTC."""
        spec = JobSpec.from_json(
            '{"command": "true", "scheduled_at": "2030-01-01T12:00:00"}'
        )

        assert spec.scheduled_at.tzinfo is timezone.utc
        assert spec.scheduled_at.hour == 12

    def test_unknown_fields_ignored(self):
        """Test extra keys do not fail validation."""
        spec = JobSpec.from_json('{"id": "a", "command": "true", "state": "dead"}')
        assert spec.id == "a"

    def test_invalid_json(self):
        """Test text that is not JSON."""
        with pytest.raises(ValidationError, match="Invalid job JSON"):
            JobSpec.from_json("{not json")

    def test_not_an_object(self):
        """Test a JSON array is rejected."""
        with pytest.raises(ValidationError, match="must be a JSON object"):
            JobSpec.from_json('["echo hi"]')

    def test_missing_command(self):
        """Test command is required."""
        with pytest.raises(ValidationError, match="command"):
            JobSpec.from_json('{"id": "a"}')

    def test_blank_command(self):
        """Test whitespace-only command is rejected."""
        with pytest.raises(ValidationError, match="command"):
            JobSpec.from_json('{"id": "a", "command": "   "}')

    def test_empty_id(self):
        """Test an empty id is rejected."""
        with pytest.raises(ValidationError, match="id"):
            JobSpec.from_json('{"id": "", "command": "true"}')

    @pytest.mark.parametrize("value", [0, -1, "many"])
    def test_invalid_max_retries(self, value):
        """Test max_retries must be a positive integer."""
        with pytest.raises(ValidationError, match="max_retries"):
            JobSpec.from_json(f'{{"command": "true", "max_retries": {value!r}}}'.replace("'", '"'))
