# =========================================================
# SUBSCRIPTION HELPER
# Centralized logic for checking a tenant's access
# =========================================================

from datetime import datetime, timezone

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from kesti.database import get_db
from kesti.core.tenant import TenantContext, get_tenant
from kesti.models.profiles import Profile


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_profile(db: Session, owner_id: str):
    return db.query(Profile).filter(Profile.id == owner_id).first()


def subscription_is_active(profile, now: datetime | None = None) -> bool:
    if profile is None or profile.subscription_ends_at is None:
        return True

    now = now or datetime.now(timezone.utc)
    return _as_utc(profile.subscription_ends_at) >= now


def require_active_tenant(
    db: Session = Depends(get_db),
    tenant: TenantContext = Depends(get_tenant),
) -> TenantContext:
    profile = get_profile(db, tenant.owner_id)

    if profile is not None and profile.is_suspended:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account suspended",
        )

    if not subscription_is_active(profile):
        raise HTTPException(
            status_code=402,
            detail="Subscription expired",
        )

    return tenant
