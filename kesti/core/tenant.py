# kesti/core/tenant.py

from fastapi import Header, HTTPException, status
from pydantic import BaseModel


class TenantContext(BaseModel):
    """Who a request acts for. Passed explicitly to every backend call."""

    owner_id: str
    device_id: str = "default"

    class Config:
        frozen = True


def get_tenant(
    x_owner_id: str | None = Header(None),
    x_device_id: str | None = Header(None),
) -> TenantContext:
    owner_id = (x_owner_id or "").strip()

    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing owner context",
        )

    device_id = (x_device_id or "").strip() or "default"

    return TenantContext(owner_id=owner_id, device_id=device_id)
