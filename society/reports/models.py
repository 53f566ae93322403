from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from society.auth.models import new_id
from society.db.session import Base
from society.utils.dates import utcnow


class Report(Base):
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=new_id)
    reporter_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    target_type = Column(String(20), nullable=False)  # user, post, comment, message, event
    target_id = Column(String(36), nullable=False)
    reason = Column(String(30), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, reviewed, resolved, dismissed
    reviewed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
