"""Tests for domain exception hierarchy."""

from __future__ import annotations

from uuid import UUID

import pytest

from rollcall.foundation.domain.exceptions import (
    AlreadyAcceptedError,
    AuthenticationError,
    AuthorizationError,
    CodeCollisionError,
    CodeSpaceExhaustedError,
    ConcurrentModificationError,
    ConflictError,
    DomainError,
    DuplicateIdentityError,
    IdentityProviderUnavailableError,
    InvalidOrExpiredCodeError,
    NotFoundError,
    ResourceLimitExceededError,
    ServiceUnavailableError,
    StepTimeoutError,
    StoreUnavailableError,
    UnauthorizedError,
    ValidationError,
)


@pytest.mark.unit
class TestDomainError:
    """Tests for base DomainError."""

    def test_message_and_code(self) -> None:
        err = DomainError("Something failed")
        assert err.message == "Something failed"
        assert err.error_code == "DOMAIN_ERROR"
        assert err.context == {}

    def test_str_without_context(self) -> None:
        assert str(DomainError("Simple failure")) == "Simple failure"

    def test_str_with_context(self) -> None:
        err = DomainError("Failed", context={"a": "1"})
        assert str(err) == "Failed (a=1)"

    def test_repr(self) -> None:
        err = DomainError("Failed", context={"a": "1"})
        assert "DomainError" in repr(err)
        assert "Failed" in repr(err)


@pytest.mark.unit
class TestNotFoundError:
    def test_error_code(self) -> None:
        assert NotFoundError("Tenant", "abc").error_code == "RESOURCE_NOT_FOUND"

    def test_uuid_resource_id(self) -> None:
        uid = UUID("550e8400-e29b-41d4-a716-446655440000")
        err = NotFoundError("Tenant", uid)
        assert err.resource_id == uid
        assert err.context["resource_id"] == str(uid)
        assert str(err).startswith(f"Tenant not found: {uid}")


@pytest.mark.unit
class TestValidationError:
    def test_field_and_reason(self) -> None:
        err = ValidationError("role", "Unknown role")
        assert err.field == "role"
        assert err.reason == "Unknown role"
        assert err.error_code == "VALIDATION_ERROR"
        assert "'role'" in err.message


@pytest.mark.unit
class TestConflictFamily:
    """Conflict subclasses keep their own codes but stay catchable as ConflictError."""

    def test_conflict_message_format(self) -> None:
        err = ConflictError("Optimistic lock failure", expected_version=5)
        assert err.message == "Conflict: Optimistic lock failure"
        assert err.context == {"expected_version": 5}

    def test_duplicate_identity(self) -> None:
        err = DuplicateIdentityError("a@oak.edu")
        assert err.error_code == "DUPLICATE_IDENTITY"
        assert err.email == "a@oak.edu"
        assert err.context["email"] == "a@oak.edu"
        assert isinstance(err, ConflictError)

    def test_concurrent_modification(self) -> None:
        err = ConcurrentModificationError("Tenant", "t-1", expected_version=3)
        assert err.error_code == "CONCURRENT_MODIFICATION"
        assert err.context["resource_id"] == "t-1"
        assert err.context["expected_version"] == 3
        assert isinstance(err, ConflictError)

    def test_already_accepted(self) -> None:
        err = AlreadyAcceptedError("ABCD2345")
        assert err.error_code == "ALREADY_ACCEPTED"
        assert err.context["code"] == "ABCD2345"
        assert isinstance(err, ConflictError)


@pytest.mark.unit
class TestCodeErrors:
    def test_collision_is_not_a_conflict(self) -> None:
        err = CodeCollisionError("ABCD2345")
        assert err.code == "ABCD2345"
        assert not isinstance(err, ConflictError)

    def test_exhausted_reports_attempts(self) -> None:
        err = CodeSpaceExhaustedError(5, tenant_id="t-1")
        assert err.attempts == 5
        assert "5 attempts" in err.message
        assert err.context == {"attempts": 5, "tenant_id": "t-1"}

    def test_invalid_or_expired_default_message(self) -> None:
        err = InvalidOrExpiredCodeError()
        assert err.error_code == "INVALID_OR_EXPIRED_CODE"
        assert err.context == {}


@pytest.mark.unit
class TestAuthErrors:
    def test_authentication_custom_code(self) -> None:
        err = AuthenticationError("Missing identity", error_code="MISSING_IDENTITY")
        assert err.error_code == "MISSING_IDENTITY"

    def test_unauthorized_message(self) -> None:
        err = UnauthorizedError("issue_invitation", tenant_id="t-1")
        assert err.message == "Not permitted to issue invitation"
        assert err.context == {"action": "issue_invitation", "tenant_id": "t-1"}
        assert isinstance(err, AuthorizationError)


@pytest.mark.unit
class TestResourceLimitExceededError:
    def test_attributes(self) -> None:
        err = ResourceLimitExceededError("code regenerations", limit=5, current=5, tenant_id="t")
        assert err.limit == 5
        assert err.current == 5
        assert err.context["tenant_id"] == "t"
        assert "5 code regenerations" in err.message


@pytest.mark.unit
class TestServiceUnavailableFamily:
    def test_store_unavailable(self) -> None:
        err = StoreUnavailableError("create_tenant", "connection refused")
        assert err.error_code == "STORE_UNAVAILABLE"
        assert err.context == {"operation": "create_tenant", "detail": "connection refused"}
        assert isinstance(err, ServiceUnavailableError)

    def test_store_unavailable_without_detail(self) -> None:
        assert StoreUnavailableError("get_tenant").context == {"operation": "get_tenant"}

    def test_identity_provider_unavailable(self) -> None:
        err = IdentityProviderUnavailableError("create_identity")
        assert err.error_code == "IDENTITY_PROVIDER_UNAVAILABLE"
        assert isinstance(err, ServiceUnavailableError)

    def test_step_timeout(self) -> None:
        err = StepTimeoutError("registration", "create_identity", 2.5)
        assert err.step == "create_identity"
        assert "2.5s" in err.message
        assert isinstance(err, ServiceUnavailableError)
