"""Caller identity as a tagged union.

Doctors, nurses and patients share :class:`UserIdentity` and carry their own
role-specific fields. Code dispatches on ``role`` rather than on a class
hierarchy, and every operation that needs the caller takes a
:class:`CallerContext` explicitly.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from common_core.domain_enums import UserRole


class UserIdentity(BaseModel):
    """Fields common to every user."""

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    name: str
    email: str | None = None


class DoctorUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal[UserRole.DOCTOR] = UserRole.DOCTOR
    identity: UserIdentity
    crm: str | None = None
    specialty: str | None = None


class NurseUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal[UserRole.NURSE] = UserRole.NURSE
    identity: UserIdentity
    coren: str | None = None


class PatientUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal[UserRole.PATIENT] = UserRole.PATIENT
    identity: UserIdentity
    cpf: str | None = None
    phone: str | None = None


ClinicUser = Annotated[
    Union[DoctorUser, NurseUser, PatientUser],
    Field(discriminator="role"),
]


class CallerContext(BaseModel):
    """Authenticated caller, passed explicitly into service operations."""

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    role: UserRole
    name: str | None = None

    @classmethod
    def for_user(cls, user: DoctorUser | NurseUser | PatientUser) -> CallerContext:
        return cls(user_id=user.identity.user_id, role=user.role, name=user.identity.name)

    @property
    def is_doctor(self) -> bool:
        return self.role is UserRole.DOCTOR

    @property
    def is_nurse(self) -> bool:
        return self.role is UserRole.NURSE

    @property
    def is_patient(self) -> bool:
        return self.role is UserRole.PATIENT
