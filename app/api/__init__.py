from .auth import router as auth_router
from .users import router as users_router
from .workspaces import router as workspaces_router
from .producers import router as producers_router
from .templates import router as templates_router
from .checklists import router as checklists_router
from .public import router as public_router
from .uploads import router as uploads_router
from .ai import router as ai_router
from .dashboard import router as dashboard_router
from .portal import router as portal_router

__all__ = [
    "auth_router",
    "users_router",
    "workspaces_router",
    "producers_router",
    "templates_router",
    "checklists_router",
    "public_router",
    "uploads_router",
    "ai_router",
    "dashboard_router",
    "portal_router"
]
