from fastapi import APIRouter
from app.api.v1.endpoints import auth, projects, articles, exports, protocols, conversations, assistant

# ============================================================
# Main API v1 Router
# ============================================================

api_router = APIRouter()

# Include auth routes at /auth
api_router.include_router(
    auth.router,
    prefix="/auth"
)

# Include project routes at /projects
api_router.include_router(
    projects.router,
    prefix="/projects"
)

# Articles and exports are nested under projects
# (/projects/{project_id}/articles, /projects/{project_id}/exports)
api_router.include_router(
    articles.router,
    prefix="/projects"
)

api_router.include_router(
    exports.router,
    prefix="/projects"
)

api_router.include_router(
    protocols.router,
    prefix="/projects"
)

# Assistant routes carry their own paths
# (/projects/{project_id}/protocol-guidance, /assistant/research)
api_router.include_router(assistant.router)

# Conversation/Chat routes
api_router.include_router(
    conversations.router,
    prefix="/conversations"
)
