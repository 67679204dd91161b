from __future__ import annotations

import os
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from battleplan.application.dtos.owner_image_dto import OwnerKindName
from battleplan.domain.entities.owner import BOX, OwnerKind, get_owner_kind
from battleplan.domain.services.refresh_bus import RefreshBus
from battleplan.infrastructure.cache.ttl_cache import TTLCache
from battleplan.infrastructure.database.repositories.owner_image_repository import OwnerImageRepository
from battleplan.infrastructure.database.repositories.owner_repository import OwnerRepository
from battleplan.infrastructure.database.supabase_client import (
    SupabaseAuthAdapter,
    UserInfo,
    get_supabase_client,
)
from battleplan.infrastructure.storage.supabase_storage import SupabaseStorage

_bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_adapter() -> SupabaseAuthAdapter:
    return SupabaseAuthAdapter()


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer_scheme)] = None,
    auth: Annotated[SupabaseAuthAdapter, Depends(get_auth_adapter)] = None,
) -> UserInfo:
    if not credentials or not credentials.scheme or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = credentials.credentials
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    try:
        return auth.validate_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))


def require_operator(user: Annotated[UserInfo, Depends(get_current_user)]) -> UserInfo:
    """Only users listed in ``MIGRATION_ADMIN_USER_IDS`` (comma separated) pass."""
    operators = {uid.strip() for uid in os.getenv("MIGRATION_ADMIN_USER_IDS", "").split(",") if uid.strip()}
    if user.id not in operators:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operator access required")
    return user


def get_owner_kind_param(owner_kind: OwnerKindName) -> OwnerKind:
    return get_owner_kind(owner_kind.value)


def get_refresh_bus(request: Request) -> RefreshBus:
    return request.app.state.refresh_bus


def get_game_cache(request: Request) -> TTLCache:
    return request.app.state.game_cache


def get_storage() -> SupabaseStorage:
    return SupabaseStorage(get_supabase_client())


def get_owner_repo(
    kind: Annotated[OwnerKind, Depends(get_owner_kind_param)],
    game_cache: Annotated[TTLCache, Depends(get_game_cache)],
) -> OwnerRepository:
    return OwnerRepository(get_supabase_client(), kind, game_cache=game_cache)


def get_image_repo(owners: Annotated[OwnerRepository, Depends(get_owner_repo)]) -> OwnerImageRepository:
    return owners.images


def get_box_repo(game_cache: Annotated[TTLCache, Depends(get_game_cache)]) -> OwnerRepository:
    return OwnerRepository(get_supabase_client(), BOX, game_cache=game_cache)
