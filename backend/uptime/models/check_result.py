"""CheckResult model - immutable outcome of one check."""
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from ..database import Base


class CheckResult(Base):
    """One check outcome. Rows are inserted once and only removed with their monitor."""

    __tablename__ = "check_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    monitor_id = Column(Integer, ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False, index=True)
    status_code = Column(Integer, nullable=True)  # NULL when the request never completed
    error_text = Column(String, nullable=True)
    latency_ms = Column(Float, nullable=True)
    checked_at = Column(DateTime, nullable=False, index=True)

    # Relationship
    monitor = relationship("Monitor", back_populates="results")
