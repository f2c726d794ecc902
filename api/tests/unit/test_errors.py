"""Tests for error handling and Problem Details implementation."""

import json

import pytest
from fastapi import Request
from unittest.mock import Mock

from notes_service.errors.problem_details import (
    ProblemDetail,
    ProblemDetailException,
    BadRequestError,
    InvalidPageTokenError,
    NotFoundError,
    ConflictError,
    InternalServerError,
    ServiceUnavailableError,
    create_problem_response
)


@pytest.fixture
def mock_request():
    request = Mock(spec=Request)
    request.url.path = "/v1/notes/note-1"
    return request


class TestProblemDetail:
    """Test ProblemDetail model."""

    def test_problem_detail_defaults(self):
        problem = ProblemDetail(title="Test Error", status=400)

        assert problem.type == "about:blank"
        assert problem.detail is None
        assert problem.instance is None

    def test_problem_detail_extra_fields(self):
        problem = ProblemDetail(title="Bad Request", status=400, code="invalid_page_token")

        assert problem.model_dump()["code"] == "invalid_page_token"


class TestProblemDetailException:
    """Test the exception hierarchy."""

    @pytest.mark.parametrize("exc,status,title", [
        (BadRequestError("bad"), 400, "Bad Request"),
        (InvalidPageTokenError(), 400, "Bad Request"),
        (NotFoundError(), 404, "Not Found"),
        (ConflictError("stale"), 409, "Conflict"),
        (InternalServerError(), 500, "Internal Server Error"),
        (ServiceUnavailableError(), 503, "Service Unavailable"),
    ])
    def test_status_and_title(self, exc, status, title):
        assert isinstance(exc, ProblemDetailException)
        assert exc.status == status
        assert exc.title == title

    def test_invalid_page_token_is_bad_request(self):
        exc = InvalidPageTokenError("Invalid page token: missing cursor fields")

        assert isinstance(exc, BadRequestError)
        assert exc.detail == "Invalid page token: missing cursor fields"
        assert exc.extensions == {"code": "invalid_page_token"}
        assert str(exc) == "Invalid page token: missing cursor fields"

    def test_to_problem_detail_uses_request_path(self, mock_request):
        problem = NotFoundError("Note 'note-1' not found").to_problem_detail(mock_request)

        assert problem.instance == "/v1/notes/note-1"
        assert problem.detail == "Note 'note-1' not found"

    def test_explicit_instance_wins(self, mock_request):
        exc = ProblemDetailException(status=418, title="Teapot", instance="/elsewhere")

        assert exc.to_problem_detail(mock_request).instance == "/elsewhere"

    def test_to_response(self, mock_request):
        response = ServiceUnavailableError("Database connection failed", database_error="refused").to_response(mock_request)

        assert response.status_code == 503
        assert response.headers["Content-Type"] == "application/problem+json"
        body = json.loads(response.body)
        assert body == {
            "type": "about:blank",
            "title": "Service Unavailable",
            "status": 503,
            "detail": "Database connection failed",
            "instance": "/v1/notes/note-1",
            "database_error": "refused"
        }

    def test_to_response_omits_missing_fields(self):
        body = json.loads(ProblemDetailException(status=500, title="Oops").to_response().body)

        assert body == {"type": "about:blank", "title": "Oops", "status": 500}


class TestCreateProblemResponse:
    """Test create_problem_response helper."""

    def test_with_request_and_extensions(self, mock_request):
        response = create_problem_response(
            status=422,
            title="Validation Error",
            detail="Validation failed",
            request=mock_request,
            validation_errors=[{"loc": ["body", "title"], "msg": "required"}]
        )

        assert response.status_code == 422
        body = json.loads(response.body)
        assert body["instance"] == "/v1/notes/note-1"
        assert body["validation_errors"][0]["loc"] == ["body", "title"]
