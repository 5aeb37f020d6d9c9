from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.orm import Session

from almacen.api.deps import get_current_user
from almacen.core.config import get_settings
from almacen.core.security import create_access_token
from almacen.db.session import get_db
from almacen.models.user import User
from almacen.schemas.auth import LoginRequest, ProfileUpdateRequest, RegisterRequest, TokenResponse
from almacen.schemas.user import CurrentUserRead, UserRead
from almacen.services import directory, storage
from almacen.services.rbac import Role, allowed_operations


router = APIRouter()
settings = get_settings()


async def parse_request_payload(request: Request) -> dict:
    content_type = (request.headers.get("content-type") or "").split(";")[0].strip().lower()

    if content_type == "application/json":
        try:
            payload = await request.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    raw = (await request.body()).decode("utf-8", errors="ignore")
    if not raw:
        return {}

    if content_type in {"application/x-www-form-urlencoded", "text/plain", ""}:
        parsed = parse_qs(raw, keep_blank_values=True)
        payload = {key: values[0] if values else "" for key, values in parsed.items()}
        # OAuth2 password flow sends the email as "username".
        if "email" not in payload and "username" in payload:
            payload["email"] = payload.pop("username")
        return payload

    return {}


def build_current_user(user: User) -> CurrentUserRead:
    return CurrentUserRead(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        photo_url=user.photo_url,
        is_active=user.is_active,
        created_at=user.created_at,
        permissions=allowed_operations(user.role),
    )


@router.post("/login", response_model=TokenResponse)
async def login(request: Request, db: Session = Depends(get_db)) -> TokenResponse:
    payload_data = await parse_request_payload(request)
    try:
        payload = LoginRequest(**payload_data)
    except ValidationError:
        raise HTTPException(status_code=422, detail="Credenciales invalidas")

    user = await run_in_threadpool(directory.authenticate, db, payload.email, payload.password)
    token = create_access_token(subject=str(user.id), email=user.email, token_version=user.token_version)
    return TokenResponse(access_token=token)


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, db: Session = Depends(get_db)) -> UserRead:
    user = directory.register_user(db, payload.email, payload.password, payload.full_name, role=Role.CASHIER)
    return UserRead.model_validate(user)


@router.get("/me", response_model=CurrentUserRead)
def me(current_user: User = Depends(get_current_user)) -> CurrentUserRead:
    return build_current_user(current_user)


@router.put("/me", response_model=CurrentUserRead)
def update_me(
    payload: ProfileUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CurrentUserRead:
    user = directory.update_profile(db, current_user, payload.full_name)
    return build_current_user(user)


@router.put("/me/photo", response_model=CurrentUserRead)
async def update_my_photo(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CurrentUserRead:
    content_type = (request.headers.get("content-type") or "").split(";")[0].strip().lower()
    content = await request.body()
    url = await storage.upload_image(
        settings.profile_images_bucket, f"profiles/{current_user.id}", content, content_type
    )
    previous = await run_in_threadpool(directory.set_photo_url, db, current_user, url)
    if previous and previous != url:
        await storage.delete_image(settings.profile_images_bucket, previous)
    return build_current_user(current_user)


@router.delete("/me/photo", response_model=CurrentUserRead)
async def delete_my_photo(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CurrentUserRead:
    previous = await run_in_threadpool(directory.set_photo_url, db, current_user, "")
    if previous:
        await storage.delete_image(settings.profile_images_bucket, previous)
    return build_current_user(current_user)
