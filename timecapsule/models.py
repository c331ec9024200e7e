from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from timecapsule.database import Base

CONTENT_TEXT = "text"
CONTENT_IMAGE = "image"
CONTENT_VIDEO = "video"
CONTENT_OTHER = "other"


class Capsule(Base):
    __tablename__ = "capsules"
    id = Column(Integer, primary_key=True, index=True)
    creator_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    unlock_at = Column(DateTime(timezone=True), nullable=False)
    is_communal = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    contents = relationship(
        "Content",
        back_populates="capsule",
        cascade="all, delete-orphan",
        order_by="Content.id",
    )

    def __repr__(self):
        return f"<Capsule {self.id} by {self.creator_id} (unlock: {self.unlock_at})>"


class Content(Base):
    __tablename__ = "contents"
    id = Column(Integer, primary_key=True, index=True)
    capsule_id = Column(Integer, ForeignKey("capsules.id", ondelete="CASCADE"), nullable=False, index=True)
    contributor_id = Column(String, nullable=False)
    content_type = Column(String, nullable=False)
    text = Column(Text, nullable=True)
    storage_key = Column(String, nullable=True, index=True)
    sentiment_score = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), nullable=False)

    capsule = relationship("Capsule", back_populates="contents")
