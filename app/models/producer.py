"""
Checklist Server - Producer Models
Produtores rurais e seus mapas de propriedade
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.user import producer_supervisors


class Producer(Base):
    """Modelo de Produtor (o mesmo CPF pode existir em vários workspaces)"""
    __tablename__ = "producers"
    __table_args__ = (
        UniqueConstraint("workspace_id", "cpf", name="uq_producer_workspace_cpf"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False, index=True)
    country_code = Column(String(2), default="BR")
    cpf = Column(String(14), index=True)
    email = Column(String(255))
    phone = Column(String(20))
    city = Column(String(100))
    state = Column(String(2))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relacionamentos
    assigned_supervisors = relationship("User", secondary=producer_supervisors, lazy="selectin")
    maps = relationship(
        "PropertyMap",
        back_populates="producer",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_maps: bool = False):
        data = {
            "id": self.id,
            "workspace_id": self.workspace_id,
            "name": self.name,
            "country_code": self.country_code,
            "cpf": self.cpf,
            "email": self.email,
            "phone": self.phone,
            "city": self.city,
            "state": self.state,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "supervisors": [
                {"id": u.id, "name": u.name, "email": u.email} for u in self.assigned_supervisors
            ],
        }
        if include_maps:
            data["maps"] = [m.to_dict() for m in self.maps]
        return data


class PropertyMap(Base):
    """Cópia permanente do mapa de talhões de um produtor"""
    __tablename__ = "property_maps"

    # map-{checklistId}-{itemId} quando vem de um checklist
    id = Column(String(120), primary_key=True, default=lambda: str(uuid.uuid4()))
    producer_id = Column(String(36), ForeignKey("producers.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255))
    fields = Column(JSON, default=list)
    property_location = Column(JSON)
    city = Column(String(100))
    state = Column(String(2))
    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    producer = relationship("Producer", back_populates="maps")

    def to_dict(self):
        return {
            "id": self.id,
            "producer_id": self.producer_id,
            "name": self.name,
            "fields": self.fields or [],
            "property_location": self.property_location,
            "city": self.city,
            "state": self.state,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
