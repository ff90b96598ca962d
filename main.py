import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError as PydanticValidationError
from pymongo.database import Database

from auth import AuthService
from config import Settings, get_settings
from database import IssueStore, UserStore, ensure_indexes, get_database
from errors import ApiError
from issues import IssueService
from profiles import ProfileService
from schemas import (
    AuthResponse,
    IssueCreate,
    IssueFilter,
    IssuePage,
    LoginRequest,
    Profile,
    RegisterRequest,
    UpvoteResult,
    UserInfoUpdate,
    describe_errors,
    parse_model,
)
from security import PasswordHasher, TokenManager
from uploads import URL_PREFIX, ImageStorage

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)
router = APIRouter(prefix="/api")


# ---------- Auth Helpers ----------

def verify_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)):
    token = credentials.credentials if credentials else None
    claims = request.app.state.auth_service.verify_token(token)
    request.state.user = claims
    return claims


def auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def issue_service(request: Request) -> IssueService:
    return request.app.state.issue_service


def profile_service(request: Request) -> ProfileService:
    return request.app.state.profile_service


# ---------- Basic routes ----------

@router.get("/health")
def health(request: Request):
    info = {
        "backend": "running",
        "database": "disconnected",
        "collections": [],
    }
    try:
        db = request.app.state.db
        info["collections"] = db.list_collection_names()[:10]
        info["database"] = "connected"
    except Exception as e:
        logger.warning(f"Health check could not reach MongoDB: {e}")
        info["database"] = f"error: {str(e)[:80]}"
    return info


# ---------- Auth endpoints ----------

@router.post("/auth/register", status_code=201, response_model=AuthResponse)
def register(req: RegisterRequest, service: AuthService = Depends(auth_service)):
    return service.register(req)


@router.post("/auth/login", response_model=AuthResponse)
def login(req: LoginRequest, service: AuthService = Depends(auth_service)):
    return service.login(req)


@router.get("/auth/verify")
def verify(user=Depends(verify_token)):
    return {"message": "Token is valid", "user": user}


@router.post("/auth/logout")
def logout(user=Depends(verify_token), service: AuthService = Depends(auth_service)):
    return service.logout(user)


# ---------- Profile endpoints ----------

@router.get("/user/profile")
def my_profile(user=Depends(verify_token), service: ProfileService = Depends(profile_service)):
    return {"user": service.get_profile(user["userId"])}


@router.get("/users/{user_id}", response_model=Profile)
def get_user_info(user_id: str, user=Depends(verify_token), service: ProfileService = Depends(profile_service)):
    return service.get_user_info(user["userId"], user_id)


@router.put("/users/{user_id}/info")
def update_user_info(
    user_id: str,
    body: UserInfoUpdate,
    user=Depends(verify_token),
    service: ProfileService = Depends(profile_service),
):
    profile = service.update_user_info(user["userId"], user_id, body)
    return {"message": "User information updated successfully", "user": profile}


# ---------- Issue endpoints ----------

@router.post("/issues", status_code=201)
def create_issue(
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    latitude: Optional[str] = Form(None),
    longitude: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    user=Depends(verify_token),
    service: IssueService = Depends(issue_service),
):
    fields = {
        "category": category,
        "description": description,
        "address": address,
        "latitude": latitude,
        "longitude": longitude,
    }
    data = parse_model(IssueCreate, {k: v for k, v in fields.items() if v is not None})
    issue = service.create_issue(user["userId"], data, images)
    return {"message": "Issue reported successfully", "issue": issue}


@router.get("/issues", response_model=IssuePage)
def list_issues(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    category: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    user=Depends(verify_token),
    service: IssueService = Depends(issue_service),
):
    filters = parse_model(IssueFilter, {"category": category, "status": status})
    return service.list_issues(filters, page, limit, viewer_id=user["userId"])


@router.get("/issues/my")
def my_issues(user=Depends(verify_token), service: IssueService = Depends(issue_service)):
    return {"issues": service.list_my_issues(user["userId"])}


@router.post("/issues/{issue_id}/upvote", response_model=UpvoteResult)
def toggle_upvote(issue_id: str, user=Depends(verify_token), service: IssueService = Depends(issue_service)):
    return service.toggle_upvote(issue_id, user["userId"])


# ---------- Error handlers ----------

def _validation_response(errors) -> JSONResponse:
    details = [{"field": ".".join(str(p) for p in e.get("loc", ())), "message": e.get("msg")} for e in errors]
    return JSONResponse(status_code=400, content={"message": describe_errors(errors), "errors": details})


async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _validation_response(exc.errors())


async def pydantic_validation_handler(request: Request, exc: PydanticValidationError):
    return _validation_response(exc.errors())


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


# ---------- Application ----------

def create_app(settings: Settings = None, db: Database = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)
    if db is None:
        db = get_database(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for warning in settings.validate_security_config():
            logger.warning(warning)
        ensure_indexes(db)
        storage.ensure_root()
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    users = UserStore(db)
    storage = ImageStorage(settings)
    app.state.settings = settings
    app.state.db = db
    app.state.auth_service = AuthService(users, PasswordHasher(settings), TokenManager(settings))
    app.state.issue_service = IssueService(
        IssueStore(db), storage, settings.default_page_size, settings.max_page_size
    )
    app.state.profile_service = ProfileService(users)

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PydanticValidationError, pydantic_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    @app.get("/")
    def root():
        return {"message": f"{settings.app_name} running"}

    app.include_router(router)
    app.mount(URL_PREFIX, StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")
    return app
