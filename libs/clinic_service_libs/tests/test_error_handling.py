"""
Unit tests for ClinicServiceError and the raise_* factories.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from common_core.error_enums import ErrorCode, SchedulingErrorCode
from quart import Quart

from clinic_service_libs.error_handling import (
    ClinicServiceError,
    raise_authorization_error,
    raise_external_service_error,
    raise_resource_not_found,
    raise_scheduling_conflict,
    raise_validation_error,
)
from clinic_service_libs.error_handling.quart import register_error_handlers


class TestClinicServiceError:
    def test_string_form_carries_code_and_message(self) -> None:
        with pytest.raises(ClinicServiceError) as exc_info:
            raise_validation_error(
                service="history_service",
                operation="get_history",
                field="patient_id",
                message="ID inválido: abc",
            )

        error = exc_info.value
        assert str(error) == "[VALIDATION_ERROR] ID inválido: abc"
        assert error.error_code == ErrorCode.VALIDATION_ERROR.value
        assert error.service == "history_service"
        assert error.operation == "get_history"
        assert error.error_detail.details["field"] == "patient_id"

    def test_correlation_id_is_preserved(self) -> None:
        correlation_id = uuid4()

        with pytest.raises(ClinicServiceError) as exc_info:
            raise_authorization_error(
                service="svc",
                operation="op",
                message="Acesso negado",
                correlation_id=correlation_id,
            )

        assert exc_info.value.correlation_id == str(correlation_id)

    def test_to_dict_is_serializable_body(self) -> None:
        with pytest.raises(ClinicServiceError) as exc_info:
            raise_resource_not_found(
                service="svc", operation="op", resource_type="Appointment", resource_id="a-1"
            )

        body = exc_info.value.to_dict()
        assert body["error"]["code"] == "RESOURCE_NOT_FOUND"
        assert "a-1" in body["error"]["message"]

    def test_external_service_error_records_dependency(self) -> None:
        with pytest.raises(ClinicServiceError) as exc_info:
            raise_external_service_error(
                service="svc", operation="op", external_service="database", message="down"
            )

        assert exc_info.value.error_detail.details["external_service"] == "database"

    def test_scheduling_codes_are_accepted(self) -> None:
        with pytest.raises(ClinicServiceError) as exc_info:
            raise_scheduling_conflict(service="svc", operation="op", message="overlap")

        assert exc_info.value.error_code == SchedulingErrorCode.APPOINTMENT_CONFLICT.value


class TestQuartErrorHandlers:
    @pytest.fixture
    def app(self) -> Quart:
        app = Quart(__name__)
        register_error_handlers(app, "test_service")

        @app.get("/denied")
        async def denied() -> str:
            raise_authorization_error(service="svc", operation="op", message="Acesso negado")

        @app.get("/conflict")
        async def conflict() -> str:
            raise_scheduling_conflict(service="svc", operation="op", message="Horário ocupado")

        @app.get("/boom")
        async def boom() -> str:
            raise RuntimeError("boom")

        return app

    async def test_authorization_error_maps_to_403(self, app: Quart) -> None:
        response = await app.test_client().get("/denied")

        assert response.status_code == 403
        body = await response.get_json()
        assert body["error"]["code"] == ErrorCode.AUTHORIZATION_ERROR.value
        assert body["error"]["message"] == "Acesso negado"

    async def test_scheduling_conflict_maps_to_409(self, app: Quart) -> None:
        response = await app.test_client().get("/conflict")

        assert response.status_code == 409

    async def test_unexpected_exception_renders_generic_500(self, app: Quart) -> None:
        response = await app.test_client().get("/boom")

        assert response.status_code == 500
        body = await response.get_json()
        assert body["service"] == "test_service"
