from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, BigInteger
from sqlalchemy.ext.declarative import declarative_base
from datetime import datetime

from services.relay_catalog import ServiceState, service_state_from_fields

Base = declarative_base()

USER_STATUS_INACTIVE = 0
USER_STATUS_ACTIVE = 1


class User(Base):
    """
    Panel account and, once provisioned, its single relay service.

    service_id holds the Docker container id. NULL means no relay has been
    created for this account; use `service_state` rather than testing the
    raw columns.
    """
    __tablename__ = "user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    status = Column(Integer, default=USER_STATUS_INACTIVE, nullable=False)  # 0 inactive, 1 active

    # Quota (GB)
    package_used = Column(Float, default=0.0, nullable=False)
    package_limit = Column(Integer, default=0, nullable=False)
    expired = Column(DateTime, nullable=True)

    # Relay service
    service_id = Column(String(100), nullable=True, unique=True)  # Docker container ID
    service_port = Column(Integer, nullable=True)
    service_pwd = Column(String(100), nullable=True)
    service_method = Column(String(50), nullable=True)
    service_type = Column(String(10), nullable=True)  # "SS" | "SSR"
    service_traffic_bytes = Column(BigInteger, default=0, nullable=False)  # Last observed container counter

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def service_state(self) -> ServiceState:
        return service_state_from_fields(
            self.service_id,
            self.service_type,
            self.service_port,
            self.service_pwd,
            self.service_method,
        )

    @property
    def is_expired(self) -> bool:
        return self.expired is not None and self.expired < datetime.utcnow()


class InviteCode(Base):
    """One-shot signup code carrying the quota granted to the new account"""
    __tablename__ = "invite_code"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(64), unique=True, nullable=False, index=True)
    package_limit = Column(Integer, default=0, nullable=False)  # GB
    available_months = Column(Integer, default=1, nullable=False)
    available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
