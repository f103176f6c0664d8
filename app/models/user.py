"""
Checklist Server - User Model
Usuários do sistema (auditores, supervisores, produtores)
"""
import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Table

from app.database import Base
from app.models.enums import UserRole

# Supervisores designados para cada produtor
producer_supervisors = Table(
    "producer_supervisors",
    Base.metadata,
    Column("producer_id", String(36), ForeignKey("producers.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

ROLE_LEVELS = {
    UserRole.SUPERADMIN.value: 4,
    UserRole.ADMIN.value: 3,
    UserRole.SUPERVISOR.value: 2,
    UserRole.PRODUCER.value: 1,
}


class User(Base):
    """Modelo de usuário"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255))
    cpf = Column(String(14), index=True)
    phone = Column(String(20))

    role = Column(String(20), default=UserRole.PRODUCER.value, nullable=False)
    workspace_id = Column(String(36), ForeignKey("workspaces.id"), nullable=True, index=True)

    is_active = Column(Boolean, default=True)
    must_change_password = Column(Boolean, default=False)

    last_login_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def role_level(self) -> int:
        return ROLE_LEVELS.get(self.role, 0)

    def has_role(self, minimum: UserRole) -> bool:
        """Verifica se o usuário tem o papel mínimo informado"""
        return self.role_level >= ROLE_LEVELS[minimum.value]

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "cpf": self.cpf,
            "phone": self.phone,
            "role": self.role,
            "workspace_id": self.workspace_id,
            "is_active": self.is_active,
            "must_change_password": self.must_change_password,
            "last_login_at": self.last_login_at.isoformat() if self.last_login_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
