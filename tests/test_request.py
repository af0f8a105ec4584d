"""Tests for request parsing and the request handler."""

from datetime import date
from unittest.mock import Mock

import pytest
from pydantic import ValidationError

from notification_engine.domain.models import DispatchMode
from notification_engine.pipeline import RunRequest, RunSummary, handle_request
from notification_engine.utils.timestamps import utc_now


class TestRunRequest:
    def test_empty_request(self):
        request = RunRequest()
        assert request.institution_id is None
        assert request.reference_ids is None
        assert request.day is None
        assert request.mode == DispatchMode.BATCH

    def test_camel_case_keys(self):
        request = RunRequest.model_validate(
            {"institutionId": "I1", "referenceIds": ["att-1"], "eventTypes": ["birthday"], "mode": "realtime"}
        )
        assert request.institution_id == "I1"
        assert request.reference_ids == ["att-1"]
        assert request.event_types == ["birthday"]
        assert request.mode == DispatchMode.REALTIME

    def test_ids_cleaned(self):
        request = RunRequest(reference_ids=[" a ", "", "a", "b"], institution_id="  ")
        assert request.reference_ids == ["a", "b"]
        assert request.institution_id is None

    def test_empty_list_means_no_filter(self):
        assert RunRequest(event_types=[]).event_types is None

    def test_day_parsed(self):
        assert RunRequest.model_validate({"day": "2024-05-01"}).day == date(2024, 5, 1)

    @pytest.mark.parametrize("body", [{"mode": "weekly"}, {"unknown": 1}, {"day": "yesterday"}])
    def test_invalid(self, body):
        with pytest.raises(ValidationError):
            RunRequest.model_validate(body)


def make_summary(**overrides):
    now = utc_now()
    fields = dict(run_id="r1", mode=DispatchMode.BATCH, day=date(2024, 5, 1), started_at=now, finished_at=now)
    fields.update(overrides)
    return RunSummary(**fields)


class TestHandleRequest:
    def test_runs_pipeline_and_returns_summary(self):
        pipeline = Mock()
        pipeline.run.return_value = make_summary()

        response = handle_request({"institutionId": "I1", "mode": "realtime"}, pipeline)

        request = pipeline.run.call_args[0][0]
        assert request.institution_id == "I1"
        assert request.mode == DispatchMode.REALTIME
        assert response["success"] is True
        assert response["run_id"] == "r1"
        assert response["total"] == 0
        assert response["sent"] == {"sms": 0, "email": 0, "in_app": 0}
        assert response["skipped"] == 0
        assert response["errors"] == []
        assert "error" not in response

    def test_missing_body_is_empty_request(self):
        pipeline = Mock()
        pipeline.run.return_value = make_summary()

        handle_request(None, pipeline)

        assert pipeline.run.call_args[0][0] == RunRequest()

    def test_invalid_body_reported(self):
        pipeline = Mock()

        response = handle_request({"mode": "weekly"}, pipeline)

        assert response["success"] is False
        assert response["error"].startswith("Invalid request: mode")
        pipeline.run.assert_not_called()

    def test_non_object_body(self):
        response = handle_request(["I1"], Mock())
        assert response == {"success": False, "error": "Request body must be a JSON object"}
