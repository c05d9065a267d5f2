"""
User persistence for the provisioning flow.

Thin SQLAlchemy wrapper exposing exactly what provisioning needs: read a user,
list taken relay ports, and a conditional update that only lands while the
user has no relay. That condition is what keeps two racing create requests
from both recording a service.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import User

logger = logging.getLogger(__name__)


class UserStore:
    """Provisioning-facing view of the user table"""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def list_used_ports(self) -> List[int]:
        rows = self.db.query(User.service_port).filter(User.service_port.isnot(None)).all()
        return [row.service_port for row in rows]

    def conditional_update(self, user_id: int, fields: Dict[str, Any]) -> int:
        """
        Write service fields onto a user that still has no service

        Args:
            user_id: Target user
            fields: Column name -> value

        Returns:
            Number of rows updated (0 when the user is gone or already provisioned)

        Raises:
            SQLAlchemyError: On database failure, after rolling back the session
        """
        try:
            affected = (
                self.db.query(User)
                .filter(User.id == user_id, User.service_id.is_(None))
                .update(fields, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Update user {user_id} failed: {e}")
            self.db.rollback()
            raise

        # Drop stale identity-map state so later reads see the committed row
        self.db.expire_all()
        return affected
