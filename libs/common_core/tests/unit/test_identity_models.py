"""
Unit tests for the tagged-union user model and caller context.
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from common_core.domain_enums import UserRole
from common_core.identity_models import (
    CallerContext,
    ClinicUser,
    DoctorUser,
    PatientUser,
    UserIdentity,
)
from pydantic import TypeAdapter, ValidationError


class TestClinicUser:
    def test_discriminates_on_role(self) -> None:
        adapter = TypeAdapter(ClinicUser)
        user = adapter.validate_python(
            {
                "role": "DOCTOR",
                "identity": {"user_id": str(uuid4()), "name": "Dr. Maria Santos"},
                "specialty": "Cardiologia",
            }
        )

        assert isinstance(user, DoctorUser)
        assert user.specialty == "Cardiologia"

    def test_unknown_role_is_rejected(self) -> None:
        adapter = TypeAdapter(ClinicUser)
        with pytest.raises(ValidationError):
            adapter.validate_python(
                {"role": "ADMIN", "identity": {"user_id": str(uuid4()), "name": "x"}}
            )


class TestCallerContext:
    def test_for_user_copies_identity_and_role(self) -> None:
        patient = PatientUser(identity=UserIdentity(user_id=uuid4(), name="João Silva"))

        caller = CallerContext.for_user(patient)

        assert caller.user_id == patient.identity.user_id
        assert caller.role is UserRole.PATIENT
        assert caller.is_patient
        assert not caller.is_doctor
