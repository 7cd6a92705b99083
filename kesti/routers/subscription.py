from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from kesti.database import get_db
from kesti.core.tenant import TenantContext, get_tenant
from kesti.core.subscription import get_profile, subscription_is_active

router = APIRouter(prefix="/subscription", tags=["Subscription"])


@router.get("/status")
def subscription_status(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
):
    profile = get_profile(db, tenant.owner_id)

    if not profile:
        return {
            "active": True,
            "suspended": False,
            "subscription_ends_at": None,
        }

    return {
        "active": subscription_is_active(profile) and not profile.is_suspended,
        "suspended": profile.is_suspended,
        "subscription_ends_at": profile.subscription_ends_at,
    }
