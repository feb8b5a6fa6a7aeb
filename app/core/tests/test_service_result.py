"""
Tests for ServiceResult and FailureKind in core/services.py.

Views rely on ``kind`` to pick the HTTP status, so every constructor must
tag its failure correctly.
"""

import pytest

from core.services import FailureKind, ServiceResult


class TestConstructors:
    def test_success_carries_data(self):
        result = ServiceResult.success({"id": 1})

        assert result.success is True
        assert result.data == {"id": 1}
        assert result.kind is None
        assert bool(result) is True

    @pytest.mark.parametrize(
        "factory, kind, status",
        [
            (ServiceResult.not_found, FailureKind.NOT_FOUND, 404),
            (ServiceResult.denied, FailureKind.DENIED, 403),
            (ServiceResult.conflict, FailureKind.CONFLICT, 409),
            (ServiceResult.invalid, FailureKind.INVALID, 400),
        ],
    )
    def test_failure_kinds_map_to_http_status(self, factory, kind, status):
        result = factory("nope")

        assert result.success is False
        assert result.kind == kind
        assert result.http_status == status
        assert bool(result) is False

    def test_plain_failure_defaults_to_invalid(self):
        result = ServiceResult.failure("bad", "BAD")

        assert result.is_invalid
        assert result.http_status == 400

    def test_success_http_status_is_200(self):
        assert ServiceResult.success(None).http_status == 200


class TestPredicates:
    def test_denied_is_not_mistaken_for_other_kinds(self):
        """
        Why it matters: A denied delete must never read as a no-op success
        or a missing record.
        """
        result = ServiceResult.denied("not yours", "NOT_AUTHOR")

        assert result.is_denied
        assert not result.is_not_found
        assert not result.is_conflict
        assert not result.is_invalid


class TestToResponse:
    def test_failure_response_includes_code_and_kind(self):
        result = ServiceResult.not_found("Message not found", "MESSAGE_NOT_FOUND")

        assert result.to_response() == {
            "success": False,
            "error": "Message not found",
            "error_code": "MESSAGE_NOT_FOUND",
            "kind": "not_found",
        }

    def test_field_errors_are_included(self):
        result = ServiceResult.invalid(
            "Invalid", "VALIDATION_ERROR", errors={"content": ["required"]}
        )

        assert result.to_response()["errors"] == {"content": ["required"]}

    def test_success_response_wraps_data(self):
        assert ServiceResult.success([1, 2]).to_response() == {
            "success": True,
            "data": [1, 2],
        }


class TestMap:
    def test_map_transforms_success_data(self):
        assert ServiceResult.success(2).map(lambda x: x * 10).data == 20

    def test_map_passes_failures_through(self):
        failure = ServiceResult.denied("no")

        assert failure.map(lambda x: x * 10) is failure
