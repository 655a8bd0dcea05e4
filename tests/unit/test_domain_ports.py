"""
Unit tests for domain ports and exceptions.

Tests verify:
- Outcomes map onto the expected HTTP-style statuses
- Exceptions are properly structured
- Domain purity (zero framework imports)
"""

from enum import Enum
from pathlib import Path

import pytest

from src.domain.exceptions import (
    DocumentConflict,
    InvalidCodeFormat,
    NotificationFailed,
    OrganizationNotFound,
    RegistrationError,
    StoreUnavailable,
)
from src.domain.ports import CodeOutcome, CodeResult, CodeStatus, CrudOperation

DOMAIN_DIR = Path(__file__).resolve().parents[2] / "src" / "domain"


class TestCodeStatusEnum:
    """Tests for CodeStatus enum."""

    def test_code_status_values(self) -> None:
        assert issubclass(CodeStatus, Enum)
        assert [s.value for s in CodeStatus] == ["new", "used", "global"]

    def test_code_status_parses_stored_value(self) -> None:
        assert CodeStatus("used") is CodeStatus.USED


class TestCodeOutcome:
    """Tests for CodeOutcome status mapping."""

    @pytest.mark.parametrize(
        "outcome, status",
        [
            (CodeOutcome.SUCCESS, 200),
            (CodeOutcome.VALIDATION, 400),
            (CodeOutcome.NOT_FOUND, 404),
            (CodeOutcome.INVALID_STATE, 400),
            (CodeOutcome.EXPIRED, 400),
            (CodeOutcome.CONFLICT, 409),
            (CodeOutcome.THRESHOLD_ABORT, 200),
            (CodeOutcome.INTERNAL, 500),
        ],
    )
    def test_status(self, outcome: CodeOutcome, status: int) -> None:
        assert outcome.status == status

    def test_every_outcome_mapped(self) -> None:
        for outcome in CodeOutcome:
            assert isinstance(outcome.status, int)


class TestCodeResult:
    """Tests for CodeResult."""

    def test_success_is_ok(self) -> None:
        result = CodeResult(CodeOutcome.SUCCESS, "done", {"a": 1})
        assert result.ok
        assert result.status == 200
        assert result.data == {"a": 1}

    def test_threshold_abort_is_not_ok(self) -> None:
        """A 200 status alone does not make an aborted batch a success."""
        result = CodeResult(CodeOutcome.THRESHOLD_ABORT, "abandoned")
        assert result.status == 200
        assert not result.ok

    def test_data_defaults_to_none(self) -> None:
        assert CodeResult(CodeOutcome.NOT_FOUND, "missing").data is None


class TestCrudOperation:
    def test_values(self) -> None:
        assert [op.value for op in CrudOperation] == ["create", "read", "update", "delete"]


class TestExceptions:
    """Tests for domain exceptions."""

    @pytest.mark.parametrize(
        "exc_type",
        [OrganizationNotFound, InvalidCodeFormat, StoreUnavailable, NotificationFailed],
    )
    def test_inherit_from_registration_error(self, exc_type: type[Exception]) -> None:
        assert issubclass(exc_type, RegistrationError)

    def test_invalid_code_format_is_value_error(self) -> None:
        assert issubclass(InvalidCodeFormat, ValueError)

    def test_document_conflict_carries_key(self) -> None:
        exc = DocumentConflict("ABCDE12345", "acme-register")
        assert exc.key == "ABCDE12345"
        assert exc.collection == "acme-register"
        assert str(exc) == "Document update conflict: ABCDE12345 in acme-register"


class TestDomainPurity:
    """Domain layer has zero framework imports."""

    @pytest.mark.parametrize(
        "statement",
        ["from fastapi", "import fastapi", "from pydantic", "from psycopg", "import psycopg"],
    )
    def test_no_framework_imports(self, statement: str) -> None:
        offenders = [
            path.name
            for path in DOMAIN_DIR.glob("*.py")
            if statement in path.read_text()
        ]
        assert offenders == [], f"'{statement}' found in domain modules: {offenders}"
