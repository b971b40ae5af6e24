from fastapi import Depends
from typing import Annotated
from tenant_billing.database.unit_of_work import UnitOfWork, get_uow

uow_dependency = Annotated[UnitOfWork, Depends(get_uow)]
