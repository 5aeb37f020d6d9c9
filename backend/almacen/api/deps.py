from collections.abc import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import event, select
from sqlalchemy.orm import Session

from almacen.core.config import get_settings
from almacen.db.session import get_db
from almacen.models.audit import AuditLog
from almacen.models.user import User
from almacen.services.identity import resolve_principal
from almacen.services.rbac import Operation, ensure_authorized


settings = get_settings()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_v1_prefix}/auth/login")


def get_current_user(db: Session = Depends(get_db), token: str = Depends(oauth2_scheme)) -> User:
    principal = resolve_principal(token)
    if not principal or not principal.subject.isdigit():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token invalido")

    user = db.scalar(select(User).where(User.id == int(principal.subject)))
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuario inactivo")
    if user.token_version != principal.token_version:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sesion expirada")
    return user


def require_operation(operation: Operation) -> Callable:
    def checker(current_user: User = Depends(get_current_user)) -> User:
        ensure_authorized(current_user.role, operation)
        return current_user

    return checker


PENDING_AUDIT_KEY = "pending_audit"


def log_action(db: Session, user_id: int, action: str, resource: str, detail: str = "") -> None:
    """
    Stage an audit entry for the change about to be committed.

    The row is written by the same commit that persists the change, so a
    change is never stored without its audit entry (or the other way round).
    Entries survive a rollback until a commit succeeds, which keeps them
    attached to units of work that are retried.
    """
    db.info.setdefault(PENDING_AUDIT_KEY, []).append(
        {"user_id": user_id, "action": action, "resource": resource, "detail": detail}
    )


@event.listens_for(Session, "before_commit")
def _write_pending_audit(session: Session) -> None:
    for entry in session.info.get(PENDING_AUDIT_KEY, []):
        session.add(AuditLog(**entry))


@event.listens_for(Session, "after_commit")
def _clear_pending_audit(session: Session) -> None:
    session.info.pop(PENDING_AUDIT_KEY, None)
