import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response, Request
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
import jwt
from pydantic import ValidationError

from .schemas.user import Token, TokenData, LoginRequest, SignupRequest, UserResponse, LoginResponse
from ..models.redis_models import SessionUser
from ..services.auth_service import AuthService
from ..services.exceptions import AuthenticationError, ConflictError, DataAccessError
from ..config.config import settings
from .dependencies import get_auth_service
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

# --- Router and security setup ---
router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


# --- Dependency for protected routes ---
async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: AuthService = Depends(get_auth_service)
) -> SessionUser:
    """
    Decodes the token and returns the user of the Redis session it points at.
    A token whose session was logged out or replaced by a newer login is refused.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not settings.SECRET_KEY:
        logger.error("SECRET_KEY is not set; refusing every token.")
        raise credentials_exception
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        token_data = TokenData.model_validate(payload)
    except (jwt.PyJWTError, ValidationError) as e:
        logger.warning(f"Token validation error: {e}")
        raise credentials_exception

    if token_data.sub is None:
        logger.warning(f"Token is valid but missing 'sub': {payload}")
        raise credentials_exception

    session = await service.get_session(token_data.sub)
    if session is None or str(session.session_id) != token_data.sid:
        logger.warning(f"User '{token_data.sub}' has a valid token but no matching session in Redis. Denying access.")
        raise credentials_exception

    return session.user_data


async def _perform_login(username: str, password: str, service: AuthService) -> LoginResponse:
    try:
        access_token, session = await service.login(username, password)
    except AuthenticationError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))
    except DataAccessError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return LoginResponse(token=Token(access_token=access_token), user=UserResponse.model_validate(session.user_data))


# --- API endpoints ---

@router.post("/signup", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def signup(
    request: Request,
    signup_request: SignupRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Creates an account. The user logs in afterwards."""
    try:
        return await service.signup(
            username=signup_request.username,
            password=signup_request.password,
            sabha_name=signup_request.sabha_name,
            karyakar_number=signup_request.karyakar_number,
        )
    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except DataAccessError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.post("/token", response_model=Token)
@limiter.limit("30/minute")
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    service: AuthService = Depends(get_auth_service)
):
    """Standard OAuth2 endpoint for Swagger UI."""
    login_response = await _perform_login(form_data.username, form_data.password, service)
    return login_response.token


@router.post("/login", response_model=LoginResponse)
@limiter.limit("30/minute")
async def login(
    request: Request,
    login_request: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login endpoint for the web client."""
    return await _perform_login(login_request.username, login_request.password, service)


@router.get("/me", response_model=UserResponse)
@limiter.limit("120/minute")
async def me(request: Request, current_user: SessionUser = Depends(get_current_user)):
    return current_user


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("60/minute")
async def logout(
    request: Request,
    service: AuthService = Depends(get_auth_service),
    current_user: SessionUser = Depends(get_current_user)
):
    """Deletes the session from Redis, together with any unsaved attendance draft."""
    logger.info(f"User '{current_user.username}' logging out.")
    try:
        await service.logout(current_user.username)
    except DataAccessError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
