from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from almacen.core.errors import AuthenticationError, NotFoundError, ValidationError
from almacen.core.security import hash_password, verify_password
from almacen.models.user import User
from almacen.services.rbac import Role, parse_role


logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def register_user(
    db: Session,
    email: str,
    password: str,
    full_name: str,
    role: Role | str = Role.CASHIER,
) -> User:
    parsed_role = parse_role(role)
    if parsed_role is None:
        raise ValidationError("Rol invalido")

    normalized = _normalize_email(email)
    if not normalized or "@" not in normalized:
        raise ValidationError("Correo invalido")
    if len(password) < 6:
        raise ValidationError("La contrasena debe tener al menos 6 caracteres")

    exists = db.scalar(select(User.id).where(func.lower(User.email) == normalized))
    if exists:
        raise ValidationError("El correo ya esta registrado")

    user = User(
        email=normalized,
        full_name=full_name.strip() or normalized.split("@")[0],
        hashed_password=hash_password(password),
        role=parsed_role.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User %s registered with role %s", user.id, user.role)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.scalar(select(User).where(User.email == _normalize_email(email)))
    if not user or not verify_password(password, user.hashed_password):
        raise AuthenticationError("Credenciales invalidas")
    if not user.is_active:
        raise AuthenticationError("Usuario inactivo")
    return user


def get_user(db: Session, user_id: int) -> User:
    user = db.scalar(select(User).where(User.id == user_id))
    if not user:
        raise NotFoundError("Usuario no encontrado", resource="user", resource_id=user_id)
    return user


def list_users(db: Session) -> list[User]:
    return list(db.scalars(select(User).order_by(User.id.asc())).all())


def update_role(db: Session, user_id: int, role: Role | str) -> User:
    parsed_role = parse_role(role)
    if parsed_role is None:
        raise ValidationError("Rol invalido")

    user = get_user(db, user_id)
    user.role = parsed_role.value
    # Tokens issued under the old role stop working.
    user.token_version += 1
    db.commit()
    db.refresh(user)
    logger.info("User %s role changed to %s", user.id, user.role)
    return user


def delete_user(db: Session, user_id: int, acting_user_id: int) -> None:
    if user_id == acting_user_id:
        raise ValidationError("No puedes eliminar tu propia cuenta")

    user = get_user(db, user_id)
    db.delete(user)
    db.commit()
    logger.info("User %s deleted by user %s", user_id, acting_user_id)


def update_profile(db: Session, user: User, full_name: str) -> User:
    if not full_name.strip():
        raise ValidationError("El nombre es obligatorio")
    user.full_name = full_name.strip()
    db.commit()
    db.refresh(user)
    return user


def set_photo_url(db: Session, user: User, photo_url: str) -> str:
    """Store a new profile image URL and return the one it replaced."""
    previous = user.photo_url
    user.photo_url = photo_url
    db.commit()
    db.refresh(user)
    return previous
