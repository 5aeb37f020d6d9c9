import logging

from sqlalchemy.orm import Session

from almacen.core.config import get_settings
from almacen.core.security import hash_password
from almacen.models.user import User
from almacen.services.rbac import Role


logger = logging.getLogger(__name__)


def seed_initial_data(db: Session) -> None:
    user_count = db.query(User).count()
    if user_count > 0:
        return

    settings = get_settings()
    db.add(
        User(
            email=settings.bootstrap_admin_email.lower(),
            full_name=settings.bootstrap_admin_name,
            hashed_password=hash_password(settings.bootstrap_admin_password),
            role=Role.ADMIN.value,
        )
    )
    db.commit()
    logger.info("Bootstrap administrator %s created", settings.bootstrap_admin_email)
