"""Input validation and role scoping of HistoryQueryService with a mocked repository."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from clinic_service_libs.error_handling import ClinicServiceError
from common_core.domain_enums import UserRole
from common_core.error_enums import ErrorCode
from common_core.identity_models import CallerContext

from services.history_service.config import Settings
from services.history_service.protocols import HistoryFilter, ProjectionRepositoryProtocol
from services.history_service.query_service import HistoryQueryService, local_day_bounds


@pytest.fixture
def repository() -> AsyncMock:
    repository = AsyncMock(spec=ProjectionRepositoryProtocol)
    repository.find.return_value = []
    return repository


@pytest.fixture
def service(repository: AsyncMock) -> HistoryQueryService:
    return HistoryQueryService(MagicMock(), repository, Settings())


def used_filter(repository: AsyncMock) -> HistoryFilter:
    return repository.find.await_args.args[1]


class TestValidation:
    async def test_malformed_patient_id(self, service: HistoryQueryService) -> None:
        nurse = CallerContext(user_id=uuid4(), role=UserRole.NURSE)

        with pytest.raises(ClinicServiceError) as exc_info:
            await service.get_history(nurse, patient_id="abc")

        assert exc_info.value.error_code == ErrorCode.VALIDATION_ERROR.value
        assert exc_info.value.message == "ID inválido: abc"

    async def test_malformed_date(self, service: HistoryQueryService) -> None:
        nurse = CallerContext(user_id=uuid4(), role=UserRole.NURSE)

        with pytest.raises(ClinicServiceError) as exc_info:
            await service.get_history(nurse, date="08/12/2025")

        assert exc_info.value.error_code == ErrorCode.VALIDATION_ERROR.value
        assert exc_info.value.message == "Formato de data inválido. Use YYYY-MM-DD"

    async def test_missing_caller_is_rejected(
        self, service: HistoryQueryService, repository: AsyncMock
    ) -> None:
        with pytest.raises(ClinicServiceError) as exc_info:
            await service.get_history(None)

        assert exc_info.value.error_code == ErrorCode.AUTHORIZATION_ERROR.value
        assert exc_info.value.message == "Usuário não autenticado"
        repository.find.assert_not_awaited()


class TestScoping:
    async def test_patient_filter_is_forced_to_caller(
        self, service: HistoryQueryService, repository: AsyncMock
    ) -> None:
        patient = CallerContext(user_id=uuid4(), role=UserRole.PATIENT)

        await service.get_history(patient, doctor_id=str(uuid4()))

        assert used_filter(repository).patient_id == patient.user_id

    async def test_nurse_filter_is_passed_through_untouched(
        self, service: HistoryQueryService, repository: AsyncMock
    ) -> None:
        nurse = CallerContext(user_id=uuid4(), role=UserRole.NURSE)

        await service.get_history(nurse, patient_name="", status="CONFIRMED")

        assert used_filter(repository) == HistoryFilter(status="CONFIRMED")

    async def test_repository_failure_is_wrapped(
        self, service: HistoryQueryService, repository: AsyncMock
    ) -> None:
        repository.find.side_effect = RuntimeError("connection reset")
        nurse = CallerContext(user_id=uuid4(), role=UserRole.NURSE)

        with pytest.raises(ClinicServiceError) as exc_info:
            await service.get_history(nurse)

        assert exc_info.value.error_code == ErrorCode.EXTERNAL_SERVICE_ERROR.value


def test_local_day_bounds_for_sao_paulo() -> None:
    from zoneinfo import ZoneInfo

    start, end = local_day_bounds("2025-12-08", ZoneInfo("America/Sao_Paulo"))

    assert start == datetime(2025, 12, 8, 3, 0, tzinfo=UTC)
    assert end == datetime(2025, 12, 9, 2, 59, 59, 999999, tzinfo=UTC)
