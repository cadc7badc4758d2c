"""
Module: reimburse_kernel.models.directory
Responsibility: ORM persistence for actor profiles and the customer and
    cost-center reference lists items may be attributed to.

Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from reimburse_kernel.db.base import TrackedBase
from reimburse_kernel.domain.dtos import CostCenter, Customer, Profile
from reimburse_kernel.domain.lifecycle import Role


class ProfileModel(TrackedBase):
    """
    Directory entry for an actor.  ``id`` is the identity provider's subject.

    The role stored here is the only role the system trusts; it is never
    taken from the request.
    """

    __tablename__ = "profiles"

    __table_args__ = (
        CheckConstraint(
            "role IN ('employee', 'manager', 'partner', 'admin')",
            name="ck_profiles_valid_role",
        ),
    )

    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.EMPLOYEE.value)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    department: Mapped[str | None] = mapped_column(String(200), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def to_dto(self) -> Profile:
        return Profile(
            id=self.id,
            role=Role(self.role),
            full_name=self.full_name,
            email=self.email,
            department=self.department,
            phone=self.phone,
        )

    def __repr__(self) -> str:
        return f"<ProfileModel {self.id} {self.role}>"


class CustomerModel(TrackedBase):
    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)

    def to_dto(self) -> Customer:
        return Customer(id=self.id, name=self.name)


class CostCenterModel(TrackedBase):
    __tablename__ = "cost_centers"

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)

    def to_dto(self) -> CostCenter:
        return CostCenter(id=self.id, name=self.name)
