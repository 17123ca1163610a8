"""Tests for counseling request handling."""

from __future__ import annotations

import pytest

from src.models import ActorContext, CounselingRequest, CounselingStatus
from src.services.counseling import CounselingService
from src.services.errors import AccessDeniedError, InvalidTransitionError, ValidationError
from src.services.intake import IncidentIntake
from src.services.repository import COUNSELING, IncidentRepository
from src.services.store import InMemoryRecordStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def repo() -> IncidentRepository:
    return IncidentRepository(InMemoryRecordStore())


@pytest.fixture
def service(repo: IncidentRepository) -> CounselingService:
    return CounselingService(repo)


@pytest.fixture
def student() -> ActorContext:
    return ActorContext.reporter("S1")


@pytest.fixture
def reviewer() -> ActorContext:
    return ActorContext.reviewer("F1")


@pytest.fixture
async def request_(repo: IncidentRepository, student: ActorContext) -> CounselingRequest:
    return await IncidentIntake(repo).submit_counseling(
        student,
        {"kind": "psychological", "urgency": "Urgent", "reason": "Struggling with exam stress"},
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestUpdate:
    async def test_schedule_then_complete(
        self,
        service: CounselingService,
        request_: CounselingRequest,
        reviewer: ActorContext,
    ) -> None:
        scheduled = await service.update(request_.id, "scheduled", reviewer, counselor_ref="C7")
        assert scheduled.status == CounselingStatus.SCHEDULED
        assert scheduled.assigned_counselor_ref == "C7"
        assert scheduled.updated_by == "F1"

        completed = await service.update(request_.id, "Completed", reviewer)
        assert completed.status == CounselingStatus.COMPLETED
        assert completed.assigned_counselor_ref == "C7", "counselor is kept when not re-specified"

    async def test_schedule_requires_counselor(
        self,
        service: CounselingService,
        repo: IncidentRepository,
        request_: CounselingRequest,
        reviewer: ActorContext,
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await service.update(request_.id, "Scheduled", reviewer)
        assert exc_info.value.details["field"] == "counselor_ref"
        stored = await repo.get(COUNSELING, request_.id, CounselingRequest)
        assert stored.status == CounselingStatus.PENDING

    async def test_referral_is_terminal(
        self,
        service: CounselingService,
        request_: CounselingRequest,
        reviewer: ActorContext,
    ) -> None:
        await service.update(request_.id, "Referred", reviewer)
        with pytest.raises(InvalidTransitionError):
            await service.update(request_.id, "Scheduled", reviewer, counselor_ref="C7")

    async def test_pending_cannot_complete(
        self,
        service: CounselingService,
        request_: CounselingRequest,
        reviewer: ActorContext,
    ) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            await service.update(request_.id, "Completed", reviewer)
        assert exc_info.value.allowed == ["Referred", "Scheduled"]

    async def test_reporter_cannot_update(
        self,
        service: CounselingService,
        request_: CounselingRequest,
        student: ActorContext,
    ) -> None:
        with pytest.raises(AccessDeniedError):
            await service.update(request_.id, "Referred", student)


class TestReads:
    async def test_filters_and_scope(
        self,
        service: CounselingService,
        repo: IncidentRepository,
        request_: CounselingRequest,
        student: ActorContext,
        reviewer: ActorContext,
    ) -> None:
        other = await IncidentIntake(repo).submit_counseling(
            ActorContext.reporter("S2"),
            {"kind": "medical", "reason": "Persistent cough"},
        )
        await service.update(other.id, "Referred", reviewer)

        assert [r.id for r in await service.list_all(status="pending")] == [request_.id]
        assert len(await service.list_all()) == 2
        assert [r.id for r in await service.list_for_reporter(student)] == [request_.id]

        assert (await service.get(request_.id, student)).id == request_.id
        with pytest.raises(AccessDeniedError):
            await service.get(other.id, student)
