from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text

from society.auth.models import new_id
from society.db.session import Base
from society.utils.dates import utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # like, comment, friend_request, friend_accepted, message, mention, follow, share, event
    type = Column(String(30), nullable=False)
    actor_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    target_type = Column(String(20), nullable=True)
    target_id = Column(String(36), nullable=True)
    content = Column(Text, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
