import datetime as dt
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, text
from gram_panchayat.db.session import Base


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


OPEN_STATUSES_SQL = "status IN ('pending', 'processing')"


class Principal(Base):
    __tablename__ = "principals"
    id = Column(String(36), primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)  # stored lower-case
    hashed_secret = Column(String(128), nullable=False)
    name = Column(String(120), nullable=False)
    phone = Column(String(32), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class RoleAssignment(Base):
    """One row per principal, so the three partitions stay disjoint."""
    __tablename__ = "role_assignments"
    principal_id = Column(String(36), ForeignKey("principals.id", ondelete="CASCADE"), primary_key=True)
    role = Column(String(16), nullable=False, index=True)  # citizen/staff/administrator
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Service(Base):
    __tablename__ = "services"
    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(32), nullable=False, index=True)
    fee = Column(Integer, nullable=False, default=0)      # 0 = free
    requirements = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        # at most one open application per citizen and service
        Index(
            "uq_applications_open_per_service", "citizen_id", "service_id",
            unique=True,
            sqlite_where=text(OPEN_STATUSES_SQL),
            postgresql_where=text(OPEN_STATUSES_SQL),
        ),
    )

    id = Column(String(36), primary_key=True)
    application_number = Column(String(24), unique=True, nullable=False)  # APP/YYYYMMDD/NNNN
    citizen_id = Column(String(36), nullable=False, index=True)

    # snapshot of the catalog entry at creation time
    service_id = Column(String(64), nullable=False, index=True)
    service_name = Column(String(120), nullable=False)
    fee = Column(Integer, nullable=False, default=0)

    reason = Column(Text, nullable=False)
    status = Column(String(16), default="pending", nullable=False, index=True)
    remarks = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)


class DailyCounter(Base):
    """Per-day application sequence, bumped atomically by each creation."""
    __tablename__ = "daily_counters"
    day = Column(String(8), primary_key=True)  # YYYYMMDD
    last_value = Column(Integer, nullable=False, default=0)
