"""
reimburse_kernel.services.directory_service -- Profiles and reference lists.

Responsibility:
    Maintain actor profiles (the source of every actor's role) and the
    customer and cost-center lists items are attributed to.

Architecture position:
    Kernel > Services.  Owns its transaction boundary.

Invariants enforced:
    - Only admins change roles, list every profile, or edit reference lists.
    - An actor may edit their own contact details but never their own role.
    - Customer and cost-center names are unique (case-insensitive).
    - Admins cannot delete their own profile, nor a profile that still owns
      reports.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reimburse_kernel.domain.clock import Clock, SystemClock
from reimburse_kernel.domain.dtos import CostCenter, Customer, Profile
from reimburse_kernel.domain.lifecycle import ActorContext, Role
from reimburse_kernel.exceptions import NotAuthorizedError, ValidationError
from reimburse_kernel.logging_config import get_logger
from reimburse_kernel.models.directory import CostCenterModel, CustomerModel, ProfileModel
from reimburse_kernel.models.report import ReportModel

logger = get_logger("services.directory")


def _require_admin(actor: ActorContext, action: str) -> None:
    if actor.role != Role.ADMIN:
        raise NotAuthorizedError(str(actor.actor_id), action, "admin role required")


def _clean_name(field: str, value: str | None) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(field, "a name is required")
    return cleaned


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class DirectoryService:
    """Profiles, customers and cost centers."""

    def __init__(self, session: Session, clock: Clock | None = None) -> None:
        self._session = session
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def register_profile(
        self,
        subject_id: UUID,
        *,
        full_name: str | None = None,
        email: str | None = None,
        department: str | None = None,
        phone: str | None = None,
    ) -> Profile:
        """Create the profile of a newly signed-up user.  Always an employee."""
        if self._session.get(ProfileModel, subject_id) is not None:
            raise ValidationError("id", f"profile {subject_id} already exists")
        try:
            model = ProfileModel(
                id=subject_id,
                role=Role.EMPLOYEE.value,
                full_name=_clean_optional(full_name),
                email=_clean_optional(email),
                department=_clean_optional(department),
                phone=_clean_optional(phone),
                created_at=self._clock.now(),
            )
            self._session.add(model)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("profile_registered", extra={"profile_id": str(subject_id)})
        return model.to_dto()

    def get_profile(self, profile_id: UUID) -> Profile | None:
        model = self._session.get(ProfileModel, profile_id)
        return model.to_dto() if model is not None else None

    def update_profile(
        self,
        actor: ActorContext,
        profile_id: UUID,
        *,
        role: Role | None = None,
        full_name: str | None = None,
        email: str | None = None,
        department: str | None = None,
        phone: str | None = None,
    ) -> Profile:
        """Edit a profile.  Admins may edit anyone; others only their own details."""
        if actor.actor_id != profile_id:
            _require_admin(actor, "update_profile")
        if role is not None:
            _require_admin(actor, "change_role")
            if actor.actor_id == profile_id and Role(role) != actor.role:
                raise NotAuthorizedError(
                    str(actor.actor_id), "change_role", "admins cannot change their own role",
                )

        model = self._session.get(ProfileModel, profile_id)
        if model is None:
            raise ValidationError("profile_id", f"profile {profile_id} does not exist")

        try:
            if role is not None:
                model.role = Role(role).value
            if full_name is not None:
                model.full_name = _clean_optional(full_name)
            if email is not None:
                model.email = _clean_optional(email)
            if department is not None:
                model.department = _clean_optional(department)
            if phone is not None:
                model.phone = _clean_optional(phone)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "profile_updated",
            extra={"profile_id": str(profile_id), "role_changed": role is not None},
        )
        return model.to_dto()

    def list_profiles(self, actor: ActorContext) -> list[Profile]:
        _require_admin(actor, "list_profiles")
        models = self._session.execute(
            select(ProfileModel).order_by(ProfileModel.full_name, ProfileModel.email)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def delete_profile(self, actor: ActorContext, profile_id: UUID) -> None:
        """Remove a profile.  The sign-in account itself is not touched."""
        _require_admin(actor, "delete_profile")
        if actor.actor_id == profile_id:
            raise NotAuthorizedError(
                str(actor.actor_id), "delete_profile", "admins cannot delete their own profile",
            )
        model = self._session.get(ProfileModel, profile_id)
        if model is None:
            raise ValidationError("profile_id", f"profile {profile_id} does not exist")
        owns_reports = self._session.execute(
            select(ReportModel.id).where(ReportModel.user_id == profile_id).limit(1)
        ).first()
        if owns_reports is not None:
            raise ValidationError("profile_id", f"profile {profile_id} still owns reports")

        try:
            self._session.delete(model)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("profile_deleted", extra={"profile_id": str(profile_id)})

    # ------------------------------------------------------------------
    # Reference lists
    # ------------------------------------------------------------------

    def _ensure_unique(self, model_cls: type, name: str, exclude: UUID | None = None) -> None:
        stmt = select(model_cls.id).where(func.lower(model_cls.name) == name.lower())
        if exclude is not None:
            stmt = stmt.where(model_cls.id != exclude)
        if self._session.execute(stmt).first() is not None:
            raise ValidationError("name", f"{name!r} already exists")

    def _create_named(self, actor: ActorContext, model_cls: type, name: str, event: str):
        _require_admin(actor, event)
        clean = _clean_name("name", name)
        self._ensure_unique(model_cls, clean)
        try:
            model = model_cls(name=clean, created_at=self._clock.now())
            self._session.add(model)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(event, extra={"name": clean})
        return model.to_dto()

    def _rename_named(
        self, actor: ActorContext, model_cls: type, entity_id: UUID, name: str, event: str,
    ):
        _require_admin(actor, event)
        clean = _clean_name("name", name)
        model = self._session.get(model_cls, entity_id)
        if model is None:
            raise ValidationError("id", f"{entity_id} does not exist")
        self._ensure_unique(model_cls, clean, exclude=entity_id)
        try:
            model.name = clean
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(event, extra={"id": str(entity_id), "name": clean})
        return model.to_dto()

    def _delete_named(
        self, actor: ActorContext, model_cls: type, entity_id: UUID, event: str,
    ) -> None:
        _require_admin(actor, event)
        model = self._session.get(model_cls, entity_id)
        if model is None:
            raise ValidationError("id", f"{entity_id} does not exist")
        name = model.name
        try:
            self._session.delete(model)
            self._session.flush()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(event, extra={"id": str(entity_id), "name": name})

    def create_customer(self, actor: ActorContext, name: str) -> Customer:
        return self._create_named(actor, CustomerModel, name, "customer_created")

    def rename_customer(self, actor: ActorContext, customer_id: UUID, name: str) -> Customer:
        return self._rename_named(actor, CustomerModel, customer_id, name, "customer_renamed")

    def delete_customer(self, actor: ActorContext, customer_id: UUID) -> None:
        """Items keep the customer name they were recorded with."""
        self._delete_named(actor, CustomerModel, customer_id, "customer_deleted")

    def list_customers(self) -> list[Customer]:
        models = self._session.execute(
            select(CustomerModel).order_by(CustomerModel.name)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def create_cost_center(self, actor: ActorContext, name: str) -> CostCenter:
        return self._create_named(actor, CostCenterModel, name, "cost_center_created")

    def rename_cost_center(self, actor: ActorContext, cost_center_id: UUID, name: str) -> CostCenter:
        return self._rename_named(
            actor, CostCenterModel, cost_center_id, name, "cost_center_renamed",
        )

    def delete_cost_center(self, actor: ActorContext, cost_center_id: UUID) -> None:
        self._delete_named(actor, CostCenterModel, cost_center_id, "cost_center_deleted")

    def list_cost_centers(self) -> list[CostCenter]:
        models = self._session.execute(
            select(CostCenterModel).order_by(CostCenterModel.name)
        ).scalars().all()
        return [m.to_dto() for m in models]
