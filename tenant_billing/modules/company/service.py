from uuid import UUID
import logging

from tenant_billing.database.unit_of_work import UnitOfWork
from tenant_billing.modules.company.models import Company
from tenant_billing.modules.company.schemas import CompanyCreate, CompanyUpdate
from tenant_billing.common.exceptions import GuardError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class CompanyService:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def get_company(self, company_id: UUID, for_update: bool = False) -> Company:
        company = self.uow.companies.get_by_id(company_id, for_update=for_update)
        if not company:
            raise NotFoundError("Company", company_id)
        return company

    def create_company(self, data: CompanyCreate, actor: str) -> Company:
        tax_number = data.tax_number.strip()
        with self.uow.transaction():
            if self.uow.companies.get_by_tax_number(tax_number):
                raise ValidationError.for_field("tax_number", "A company with this tax number already exists.")

            company = Company(
                name=data.name.strip(),
                tax_number=tax_number,
                address=data.address,
                phone=data.phone,
                email=data.email,
                created_by=actor,
            )
            self.uow.companies.add(company)

        logger.info(f"Company created: {company.display_name} by {actor}")
        return company

    def update_company(self, company_id: UUID, data: CompanyUpdate, actor: str) -> Company:
        with self.uow.transaction():
            company = self.get_company(company_id, for_update=True)
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(company, field, value)
            company.set_updated_by(actor)
        return company

    def activate_company(self, company_id: UUID, actor: str) -> Company:
        with self.uow.transaction():
            company = self.get_company(company_id, for_update=True)
            company.activate(by=actor)
        logger.info(f"Company {company_id} activated by {actor}")
        return company

    def deactivate_company(self, company_id: UUID, actor: str) -> Company:
        with self.uow.transaction():
            company = self.get_company(company_id, for_update=True)
            company.deactivate(by=actor)
        logger.info(f"Company {company_id} deactivated by {actor}")
        return company

    def delete_company(self, company_id: UUID, actor: str) -> None:
        """Eliminación lógica; bloqueada mientras existan registros del tenant"""
        with self.uow.transaction():
            company = self.get_company(company_id, for_update=True)
            dependents = self.uow.companies.count_dependents(company_id)
            if dependents:
                raise GuardError(
                    "company_has_dependents",
                    "Company still owns users, customers, products or invoices.",
                    company_id=company_id,
                    dependents=dependents,
                )
            company.set_updated_by(actor)
            self.uow.companies.soft_delete(company)
        logger.info(f"Company {company_id} deleted by {actor}")
