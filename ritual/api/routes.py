"""
Ritual API routes.

Every response uses the envelope {"success": bool, "data"?: T, "error"?: str}.
Service errors are rendered by the exception handlers installed in app.py.

Routes (mounted under /api):
    POST   /auth/register
    POST   /auth/login
    GET    /user/me              (auth)
    PUT    /user/profile         (auth)
    GET    /habits               (auth)
    POST   /habits               (auth)
    GET    /habits/{id}          (auth)
    PUT    /habits/{id}          (auth)
    POST   /habits/{id}/log      (auth)
    DELETE /habits/{id}          (auth)
    GET    /stats                (auth)
"""

import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel, Field

from ..entity.types import parse_log_date
from ..errors import AuthError
from ..services import AuthService, HabitService
from ..services.stats import user_stats

logger = logging.getLogger(__name__)


# =============================================================================
# Request Models
# =============================================================================
#
# Fields are optional at the model level so that missing fields are reported
# by the services with their own messages.


class RegisterRequest(BaseModel):
    """Create an account."""
    name: str | None = Field(None, description="Display name")
    email: str | None = Field(None, description="Email, used as the login key")
    password: str | None = Field(None, description="Plaintext password")


class LoginRequest(BaseModel):
    """Exchange credentials for a token."""
    email: str | None = None
    password: str | None = None


class ProfileRequest(BaseModel):
    """Update the caller's profile."""
    name: str | None = None


class CreateHabitRequest(BaseModel):
    """Create a habit."""
    name: str | None = Field(None, description="Habit name")
    color: str | None = Field(None, description="#rrggbb color, defaults to #3b82f6")
    frequency: dict[str, Any] | None = Field(None, description="Tagged frequency, defaults to daily")
    goal: dict[str, Any] | None = Field(None, description="{target, unit, timeframe}")


class UpdateHabitRequest(BaseModel):
    """Partial habit update. Unknown fields, logs included, are dropped."""
    name: str | None = None
    color: str | None = None
    frequency: dict[str, Any] | None = None
    goal: dict[str, Any] | None = None

    model_config = {"extra": "ignore"}


class LogRequest(BaseModel):
    """Progress for one day."""
    date: str | None = Field(None, description="YYYY-MM-DD")
    # Untyped: parse_log_value checks it without coercion
    value: Any = Field(None, description="Amount done that day")


def ok(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


# =============================================================================
# Dependencies
# =============================================================================


def get_auth_service(request: Request) -> AuthService:
    """Get auth service from app state."""
    return request.app.state.auth_service


def get_habit_service(request: Request) -> HabitService:
    """Get habit service from app state."""
    return request.app.state.habit_service


def get_current_user_id(
    authorization: str | None = Header(None),
    auth: AuthService = Depends(get_auth_service),
) -> str:
    """Resolve the Authorization bearer token to the caller's user id."""
    if not authorization:
        raise AuthError("Unauthorized: Missing token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Unauthorized: Invalid authorization header")
    return auth.authorize(token.strip())


auth_router = APIRouter(prefix="/auth", tags=["Auth"])
router = APIRouter(tags=["Habits"], dependencies=[Depends(get_current_user_id)])


# =============================================================================
# Auth Endpoints
# =============================================================================


@auth_router.post("/register")
async def register(body: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    """Create an account. The password hash is never returned."""
    user = await auth.register(body.name, body.email, body.password)
    return ok(user.public_json())


@auth_router.post("/login")
async def login(body: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    """Verify credentials and return the user with a 7-day bearer token."""
    user, token = await auth.login(body.email, body.password)
    return ok({"user": user.public_json(), "token": token})


# =============================================================================
# User Endpoints
# =============================================================================


@router.get("/user/me")
async def get_me(
    user_id: str = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
):
    user = await auth.get_user(user_id)
    return ok(user.public_json())


@router.put("/user/profile")
async def update_profile(
    body: ProfileRequest,
    user_id: str = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
):
    user = await auth.update_profile(user_id, body.name)
    return ok(user.public_json())


# =============================================================================
# Habit Endpoints
# =============================================================================


@router.get("/habits")
async def list_habits(
    user_id: str = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
):
    items = await habits.list(user_id)
    return ok({"items": [h.to_json() for h in items], "next": None})


@router.post("/habits")
async def create_habit(
    body: CreateHabitRequest,
    user_id: str = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
):
    habit = await habits.create(
        user_id,
        name=body.name,
        color=body.color,
        frequency=body.frequency,
        goal=body.goal,
    )
    return ok(habit.to_json())


@router.get("/habits/{habit_id}")
async def get_habit(
    habit_id: str,
    user_id: str = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
):
    habit = await habits.get(user_id, habit_id)
    return ok(habit.to_json())


@router.put("/habits/{habit_id}")
async def update_habit(
    habit_id: str,
    body: UpdateHabitRequest,
    user_id: str = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
):
    habit = await habits.update(user_id, habit_id, body.model_dump(exclude_unset=True))
    return ok(habit.to_json())


@router.post("/habits/{habit_id}/log")
async def log_habit(
    habit_id: str,
    body: LogRequest,
    user_id: str = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
):
    habit = await habits.log(user_id, habit_id, body.date, body.value)
    return ok(habit.to_json())


@router.delete("/habits/{habit_id}")
async def delete_habit(
    habit_id: str,
    user_id: str = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
):
    result = await habits.delete(user_id, habit_id)
    return ok(result)


# =============================================================================
# Statistics
# =============================================================================


@router.get("/stats")
async def get_stats(
    today: str | None = Query(None, description="Caller's local date, YYYY-MM-DD"),
    user_id: str = Depends(get_current_user_id),
    habits: HabitService = Depends(get_habit_service),
):
    """Dashboard statistics. Defaults to the server's current date."""
    day = date.fromisoformat(parse_log_date(today)) if today else date.today()
    items = await habits.list(user_id)
    return ok(user_stats(user_id, items, day))
