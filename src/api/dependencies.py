"""FastAPI dependencies for injection."""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import Settings
from models.user import AuthUser
from services.auth_service import AuthService
from services.backup_service import BackupService
from services.classification_service import ClassificationEngine
from services.collection_service import BookmarkCollection, CollectionRegistry

# auto_error=False so a missing header gets the same 401 as a bad token
security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was built with."""
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    """Credential store of the running app."""
    return request.app.state.auth_service


def get_backup_service(request: Request) -> BackupService:
    """Backup store of the running app."""
    return request.app.state.backup_service


def get_collections(request: Request) -> CollectionRegistry:
    """Per-user collections of the running app."""
    return request.app.state.collections


def get_classification_engine(request: Request) -> ClassificationEngine:
    """Classification engine of the running app."""
    return request.app.state.classification_engine


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """Extract the bearer token, or reject the request."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthUser:
    """Dependency that validates the session token and returns its user."""
    user = await auth_service.get_current_user(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_collection(
    current_user: AuthUser = Depends(get_current_user),
    collections: CollectionRegistry = Depends(get_collections),
) -> BookmarkCollection:
    """The signed-in user's bookmark collection."""
    return collections.get(current_user.id)
