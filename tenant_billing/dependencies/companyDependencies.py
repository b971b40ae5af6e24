from typing import Annotated
from fastapi import Depends, Header, Request, HTTPException, status
from uuid import UUID


def get_tenant_id(request: Request) -> UUID:
    """Extract tenant_id from request state set by TenantMiddleware"""
    if not hasattr(request.state, 'tenant_id'):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tenant context not found. Ensure X-Company-ID header is provided."
        )
    return request.state.tenant_id


def get_actor(x_actor: Annotated[str, Header()] = "system") -> str:
    """Acting user name; authentication is handled outside this service"""
    return x_actor.strip() or "system"


TenantId = Annotated[UUID, Depends(get_tenant_id)]
Actor = Annotated[str, Depends(get_actor)]
