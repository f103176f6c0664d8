"""
Checklist Server - Database Session
"""
import logging
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import select

from app.core.config import settings

logger = logging.getLogger(__name__)

# Engine assíncrono
engine = create_async_engine(
    settings.db_url,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

# Base para models
Base = declarative_base()


async def get_db() -> AsyncSession:
    """Dependency para injetar sessão do banco (uma transação por request)"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def verify_superadmin_exists():
    """
    Avisa na inicialização quando ainda não existe SUPERADMIN.
    O primeiro acesso deve chamar POST /api/auth/setup.
    """
    from app.models import User, UserRole

    async with AsyncSessionLocal() as session:
        try:
            result = await session.execute(
                select(User.id).where(User.role == UserRole.SUPERADMIN.value).limit(1)
            )
            if result.scalar_one_or_none() is None:
                logger.warning("Nenhum SUPERADMIN encontrado - execute POST /api/auth/setup")
        except Exception as e:
            logger.error(f"Erro ao verificar superadmin: {e}")


async def init_db():
    """Inicializa banco de dados (cria tabelas)"""
    # Garante que todos os models estão registrados no metadata
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await verify_superadmin_exists()
