"""Monitor model - URLs under observation and their scheduling state."""
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base
from ..utils.db_utils import utcnow

URL_MAX_LENGTH = 255
LABEL_MAX_LENGTH = 190
MIN_FREQUENCY_MINUTES = 1
MAX_FREQUENCY_MINUTES = 1440


class Monitor(Base):
    """A monitored URL owned by one user.

    ``claimed`` and ``next_due_at`` belong to the claim protocol and are only
    written through MonitorStore.try_claim / try_release (plus the one-time
    seeding of a null ``next_due_at``).
    """

    __tablename__ = "monitors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(Integer, nullable=False, index=True)
    url = Column(String(URL_MAX_LENGTH), nullable=False)
    label = Column(String(LABEL_MAX_LENGTH), nullable=True)
    frequency = Column(Integer, nullable=False)  # minutes
    next_due_at = Column(DateTime, nullable=True, index=True)  # NULL = due now
    claimed = Column(Boolean, nullable=False, default=False)
    claimed_at = Column(DateTime, nullable=True)  # set while claimed; owner edits leave it alone
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    results = relationship(
        "CheckResult",
        back_populates="monitor",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
