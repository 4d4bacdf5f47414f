"""CRM contact — owned by the CRM; read here only to match WhatsApp senders by phone."""

from sqlalchemy import Column, String

from social_inbox.infrastructure.database import Base


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True)
    workspace_id = Column(String(64), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    def __repr__(self):
        return f"<Contact {self.name}>"
