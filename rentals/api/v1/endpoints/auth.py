from fastapi import APIRouter, HTTPException, status

from rentals.api.deps import DB, CurrentUser, AdminOnly
from rentals.schemas.auth import (
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ChangePasswordRequest,
    TokenResponse,
)
from rentals.schemas.base import ApiResponse
from rentals.schemas.user import UserResponse, UserUpdate
from rentals.services.auth_service import AuthService, AuthError


router = APIRouter(tags=["Authentication"])


@router.post("/login", response_model=ApiResponse[TokenResponse])
async def login(
    data: LoginRequest,
    db: DB,
):
    """
    Authenticate user and return access/refresh tokens.
    """
    auth_service = AuthService(db)

    user = await auth_service.authenticate_user(data.email, data.password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token, refresh_token, expires_in = await auth_service.create_tokens(user)

    return ApiResponse.ok(
        TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            token_type="bearer",
            expires_in=expires_in,
            user=UserResponse.model_validate(user),
        ),
        message="Login successful",
    )


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
async def refresh_token(
    data: RefreshTokenRequest,
    db: DB,
):
    """
    Refresh access token using a valid refresh token.
    """
    result = await AuthService(db).refresh_tokens(data.refresh_token)

    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user, access_token, new_refresh_token, expires_in = result
    return ApiResponse.ok(
        TokenResponse(
            access_token=access_token,
            refresh_token=new_refresh_token,
            expires_in=expires_in,
            user=UserResponse.model_validate(user),
        ),
        message="Token refreshed",
    )


@router.post(
    "/register",
    response_model=ApiResponse[UserResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[AdminOnly],
)
async def register(
    data: RegisterRequest,
    db: DB,
    current_user: CurrentUser,
):
    """
    Create a back-office user.
    Requires: ADMIN
    """
    try:
        user = await AuthService(db).register_user(
            email=data.email,
            password=data.password,
            first_name=data.first_name,
            last_name=data.last_name,
            phone=data.phone,
            roles=data.roles,
            assigned_by=current_user.id,
        )
    except AuthError as e:
        code = status.HTTP_409_CONFLICT if "already exists" in e.message else status.HTTP_400_BAD_REQUEST
        raise HTTPException(status_code=code, detail=e.message)

    return ApiResponse.ok(UserResponse.model_validate(user), message="User registered successfully")


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_me(current_user: CurrentUser):
    """Get the current user's profile."""
    return ApiResponse.ok(UserResponse.model_validate(current_user))


@router.put("/me", response_model=ApiResponse[UserResponse])
async def update_me(
    data: UserUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """Update the current user's profile."""
    try:
        user = await AuthService(db).update_profile(current_user, data.model_dump(exclude_unset=True))
    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    return ApiResponse.ok(UserResponse.model_validate(user), message="Profile updated")


@router.post("/change-password", response_model=ApiResponse[None])
async def change_password(
    data: ChangePasswordRequest,
    db: DB,
    current_user: CurrentUser,
):
    """Change the current user's password."""
    changed = await AuthService(db).change_password(current_user, data.current_password, data.new_password)

    if not changed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    return ApiResponse.ok(message="Password changed successfully")
