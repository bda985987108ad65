"""
Issuing company profiles (``stock_modules.purchasing.companies``).

Responsibility
--------------
CRUD for the company profiles a purchase order can be issued under.  A
profile is a unique name plus an ordered list of labelled details (tax id,
address, phone ...) printed on the order header.

Invariants enforced
-------------------
* Profile names are non-blank and unique.
* Every detail has a non-blank label.
* A profile referenced by a purchase order is not deleted.

Failure modes
-------------
* ``IssuingCompanyNotFoundError`` for an unknown id.
* ``ValidationError`` for a blank or taken name or a blank detail label.
* ``InvalidOperationError`` when deleting a profile still in use.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.db.engine import Database
from stock_kernel.exceptions import (
    InvalidOperationError,
    IssuingCompanyNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_modules.purchasing.models import CompanyDetail, IssuingCompany
from stock_modules.purchasing.orm import IssuingCompanyModel, PurchaseOrderModel

logger = get_logger("modules.purchasing.companies")


def _profile_name(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError("profile_name", "must not be empty")
    return value


def _details(details: Iterable[CompanyDetail | tuple[str, str]]) -> list[dict[str, str]]:
    rows = []
    for detail in details:
        label, value = (detail.label, detail.value) if isinstance(detail, CompanyDetail) else detail
        label = (label or "").strip()
        if not label:
            raise ValidationError("details", "every detail needs a label")
        rows.append({"label": label, "value": value or ""})
    return rows


def _load(session: Session, company_id: UUID) -> IssuingCompanyModel:
    company = session.get(IssuingCompanyModel, company_id)
    if company is None:
        raise IssuingCompanyNotFoundError(str(company_id))
    return company


def _name_taken(session: Session, name: str, exclude_id: UUID | None = None) -> bool:
    stmt = select(IssuingCompanyModel.id).where(IssuingCompanyModel.profile_name == name)
    if exclude_id is not None:
        stmt = stmt.where(IssuingCompanyModel.id != exclude_id)
    return session.execute(stmt).first() is not None


class IssuingCompanyService:
    """Issuing company profiles, each call in its own transaction."""

    def __init__(self, database: Database):
        self._database = database

    def create_issuing_company(
        self,
        profile_name: str,
        details: Iterable[CompanyDetail | tuple[str, str]] = (),
    ) -> IssuingCompany:
        name = _profile_name(profile_name)
        rows = _details(details)
        with self._database.session_scope() as session:
            if _name_taken(session, name):
                raise ValidationError("profile_name", f"profile already exists: {name}")
            company = IssuingCompanyModel(profile_name=name, details=rows)
            session.add(company)
            session.flush()
            dto = company.to_dto()
        logger.info(
            "issuing_company_created",
            extra={"issuing_company_id": str(dto.id), "profile_name": name},
        )
        return dto

    def update_issuing_company(
        self,
        company_id: UUID,
        profile_name: str | None = None,
        details: Iterable[CompanyDetail | tuple[str, str]] | None = None,
    ) -> IssuingCompany:
        """Replace the name and/or the whole detail list."""
        with self._database.session_scope() as session:
            company = _load(session, company_id)
            if profile_name is not None:
                name = _profile_name(profile_name)
                if _name_taken(session, name, exclude_id=company_id):
                    raise ValidationError("profile_name", f"profile already exists: {name}")
                company.profile_name = name
            if details is not None:
                company.details = _details(details)
            session.flush()
            dto = company.to_dto()
        logger.info("issuing_company_updated", extra={"issuing_company_id": str(company_id)})
        return dto

    def delete_issuing_company(self, company_id: UUID) -> None:
        with self._database.session_scope() as session:
            company = _load(session, company_id)
            in_use = session.execute(
                select(PurchaseOrderModel.id)
                .where(PurchaseOrderModel.issuing_company_id == company_id)
                .limit(1)
            ).first()
            if in_use is not None:
                raise InvalidOperationError(
                    f"Issuing company {company_id} is referenced by purchase orders"
                )
            session.delete(company)
        logger.info("issuing_company_deleted", extra={"issuing_company_id": str(company_id)})

    def get_issuing_company(self, company_id: UUID) -> IssuingCompany:
        with self._database.read_scope() as session:
            return _load(session, company_id).to_dto()

    def list_issuing_companies(self) -> list[IssuingCompany]:
        """All profiles by name."""
        with self._database.read_scope() as session:
            stmt = select(IssuingCompanyModel).order_by(IssuingCompanyModel.profile_name)
            return [company.to_dto() for company in session.execute(stmt).scalars()]
