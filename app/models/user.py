from datetime import datetime

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from app.database import Base


class User(Base):
    __tablename__ = "users"

    # Owner id shared with the auth provider (Firebase uid, etc.)
    id = Column(String, primary_key=True, index=True)

    email = Column(String, unique=True, index=True, nullable=True)
    display_name = Column(String, nullable=True)

    # "admin" / "collector" / ...; matched exactly when targeting by role
    role = Column(String, nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    device_tokens = relationship("DeviceToken", back_populates="user", cascade="all, delete-orphan")
