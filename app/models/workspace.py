"""
Checklist Server - Workspace Model
Tenant do sistema; um workspace pode ter um nível de sub-workspaces
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey

from app.database import Base


class Workspace(Base):
    """Modelo de Workspace (organização)"""
    __tablename__ = "workspaces"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    cnpj = Column(String(20))
    logo_url = Column(String(500))

    # Hierarquia (apenas um nível)
    parent_workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=True, index=True)
    has_subworkspaces = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_subworkspace(self) -> bool:
        return self.parent_workspace_id is not None

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "cnpj": self.cnpj,
            "logo_url": self.logo_url,
            "parent_workspace_id": self.parent_workspace_id,
            "has_subworkspaces": bool(self.has_subworkspaces),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
