"""Role scoping and filter combinations of HistoryQueryService against SQLite."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import pytest
from clinic_service_libs.error_handling import ClinicServiceError
from common_core.domain_enums import UserRole
from common_core.error_enums import ErrorCode
from common_core.identity_models import CallerContext
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.history_service.config import Settings
from services.history_service.implementations.projection_repository_impl import (
    SQLAlchemyProjectionRepository,
)
from services.history_service.models_db import ProjectedAppointmentHistory
from services.history_service.query_service import HistoryQueryService


@pytest.fixture
def query_service(
    session_factory: async_sessionmaker[AsyncSession], settings: Settings
) -> HistoryQueryService:
    return HistoryQueryService(session_factory, SQLAlchemyProjectionRepository(), settings)


def caller(role: UserRole, user_id: Any = None) -> CallerContext:
    return CallerContext(user_id=user_id or uuid4(), role=role)


class TestPatientScope:
    async def test_patient_sees_only_own_history(
        self, query_service: HistoryQueryService, seeded_history: Any
    ) -> None:
        rows = await query_service.get_history(caller(UserRole.PATIENT, seeded_history.p1))

        assert len(rows) == 3
        assert {r.patient_id for r in rows} == {seeded_history.p1}

    async def test_patient_filtering_by_own_id_is_allowed(
        self, query_service: HistoryQueryService, seeded_history: Any
    ) -> None:
        rows = await query_service.get_history(
            caller(UserRole.PATIENT, seeded_history.p1), patient_id=str(seeded_history.p1)
        )

        assert len(rows) == 3

    async def test_patient_cannot_read_another_patient(
        self, query_service: HistoryQueryService, seeded_history: Any
    ) -> None:
        with pytest.raises(ClinicServiceError) as exc_info:
            await query_service.get_history(
                caller(UserRole.PATIENT, seeded_history.p1), patient_id=str(seeded_history.p2)
            )

        assert exc_info.value.error_code == ErrorCode.AUTHORIZATION_ERROR.value
        assert "próprio histórico" in exc_info.value.message

    async def test_patient_with_date_filter(
        self, query_service: HistoryQueryService, seeded_history: Any
    ) -> None:
        rows = await query_service.get_history(
            caller(UserRole.PATIENT, seeded_history.p1), date="2025-12-08"
        )

        assert len(rows) == 1


class TestDoctorScope:
    async def test_doctor_defaults_to_own_appointments(
        self, query_service: HistoryQueryService, seeded_history: Any
    ) -> None:
        rows = await query_service.get_history(caller(UserRole.DOCTOR, seeded_history.d1))

        assert len(rows) == 3
        assert [r.start_at for r in rows] == sorted(r.start_at for r in rows)

    @pytest.mark.parametrize(
        "filters, expected",
        [
            ({"patient_name": "joão"}, 2),
            ({"date": "2025-12-08"}, 1),
            ({"status": "CONFIRMED"}, 2),
            ({"status": "SCHEDULED"}, 0),
        ],
    )
    async def test_doctor_filters_combine_with_own_scope(
        self,
        query_service: HistoryQueryService,
        seeded_history: Any,
        filters: dict[str, str],
        expected: int,
    ) -> None:
        rows = await query_service.get_history(
            caller(UserRole.DOCTOR, seeded_history.d1), **filters
        )

        assert len(rows) == expected

    async def test_doctor_filtering_by_patient(
        self, query_service: HistoryQueryService, seeded_history: Any
    ) -> None:
        rows = await query_service.get_history(
            caller(UserRole.DOCTOR, seeded_history.d1), patient_id=str(seeded_history.p2)
        )

        assert len(rows) == 1
        assert rows[0].patient_name == "Maria Oliveira"

    async def test_explicit_doctor_filter_overrides_default(
        self, query_service: HistoryQueryService, seeded_history: Any
    ) -> None:
        rows = await query_service.get_history(
            caller(UserRole.DOCTOR, seeded_history.d1), doctor_id=str(seeded_history.d2)
        )

        assert len(rows) == 1
        assert rows[0].doctor_name == "Dr. Pedro Costa"


class TestNurseScope:
    async def test_nurse_sees_everything(
        self, query_service: HistoryQueryService, seeded_history: Any
    ) -> None:
        rows = await query_service.get_history(caller(UserRole.NURSE))

        assert len(rows) == 4

    async def test_nurse_filters(
        self, query_service: HistoryQueryService, seeded_history: Any
    ) -> None:
        nurse = caller(UserRole.NURSE)

        by_patient = await query_service.get_history(nurse, patient_id=str(seeded_history.p1))
        by_doctor = await query_service.get_history(nurse, doctor_id=str(seeded_history.d1))
        by_both = await query_service.get_history(
            nurse, patient_id=str(seeded_history.p1), doctor_id=str(seeded_history.d1)
        )

        assert (len(by_patient), len(by_doctor), len(by_both)) == (3, 3, 2)

    @pytest.mark.parametrize(
        "patient_name, expected",
        [("silva", 3), ("MARIA", 1), ("%", 0), ("_", 0), ("Jo_o", 0)],
    )
    async def test_patient_name_is_literal_substring(
        self,
        query_service: HistoryQueryService,
        seeded_history: Any,
        patient_name: str,
        expected: int,
    ) -> None:
        rows = await query_service.get_history(caller(UserRole.NURSE), patient_name=patient_name)

        assert len(rows) == expected


class TestLocalDayBoundaries:
    async def test_date_filter_uses_clinic_local_day(
        self,
        query_service: HistoryQueryService,
        session_factory: async_sessionmaker[AsyncSession],
        seeded_history: Any,
    ) -> None:
        # 01:30 UTC on the 9th is 22:30 on the 8th in Sao Paulo.
        async with session_factory() as session, session.begin():
            session.add(
                ProjectedAppointmentHistory(
                    appointment_id=uuid4(),
                    patient_id=seeded_history.p2,
                    doctor_id=seeded_history.d2,
                    patient_name="Maria Oliveira",
                    doctor_name="Dr. Pedro Costa",
                    start_at=datetime(2025, 12, 9, 1, 30, tzinfo=UTC),
                    status="CONFIRMED",
                    event_timestamp=datetime(2025, 12, 1, tzinfo=UTC),
                )
            )
        nurse = caller(UserRole.NURSE)

        eighth = await query_service.get_history(nurse, date="2025-12-08")
        ninth = await query_service.get_history(nurse, date="2025-12-09")

        assert len(eighth) == 2
        assert len(ninth) == 1
