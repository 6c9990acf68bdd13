from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from decimal import Decimal
from typing import Optional

import structlog

import auth
import crud
import schemas
from config import Settings, get_settings
from database import Database, get_db
from errors import AppError
from logging_config import configure_logging
from models import Category

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = Database(settings.database_url)
        # Create all tables on startup if they don't exist
        db.create_all()
        app.state.db = db
        logger.info("database_ready", dialect=db.engine.dialect.name)
        try:
            yield
        finally:
            db.dispose()
            logger.info("database_closed")

    app = FastAPI(
        title="Spendbook API",
        description="Personal expense tracker with per-user expenses and category summaries.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    register_routes(app)
    return app


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("internal_error", path=request.url.path, error=exc.message)
            return JSONResponse(status_code=exc.status_code, content={"error": "Something went wrong"})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error("unhandled_error", path=request.url.path, method=request.method, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Something went wrong"},
        )


def _set_session_cookie(response: Response, settings: Settings, token: str) -> None:
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        max_age=settings.token_ttl_seconds,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


def register_routes(app: FastAPI) -> None:

    @app.get("/", tags=["Health"])
    def root():
        return {"status": "ok", "message": "Spendbook API is running."}

    @app.get("/health", tags=["Health"])
    def health():
        return {"status": "healthy"}

    # ── Auth ──────────────────────────────────────────────────────────────

    @app.post(
        "/auth/register",
        response_model=schemas.UserPublic,
        status_code=status.HTTP_201_CREATED,
        tags=["Auth"],
        summary="Create an account",
    )
    def register(
        body: schemas.RegisterRequest,
        db: Session = Depends(get_db),
        settings: Settings = Depends(auth.get_settings_dep),
    ):
        """Returns the new user's id and username. 409 if the username is taken."""
        return auth.register_user(db, settings, body.username, body.password)

    @app.post("/auth/login", response_model=schemas.UserPublic, tags=["Auth"], summary="Log in")
    def login(
        body: schemas.Credentials,
        response: Response,
        db: Session = Depends(get_db),
        settings: Settings = Depends(auth.get_settings_dep),
    ):
        """
        Verify credentials and set the HTTP-only session cookie.

        Wrong password and unknown username both answer 401 with the same body.
        """
        user, token = auth.login(db, settings, body.username, body.password)
        _set_session_cookie(response, settings, token)
        return user

    @app.post("/auth/logout", response_model=schemas.MessageResponse, tags=["Auth"], summary="Log out")
    def logout(response: Response, settings: Settings = Depends(auth.get_settings_dep)):
        """Tokens are stateless, so logging out only clears the cookie on the client."""
        response.delete_cookie(
            key=settings.cookie_name,
            path="/",
            httponly=True,
            samesite="lax",
            secure=settings.cookie_secure,
        )
        return {"message": "Logged out successfully"}

    @app.get("/auth/me", response_model=schemas.CurrentUserResponse, tags=["Auth"])
    def me(user: schemas.UserPublic = Depends(auth.get_current_user)):
        return {"user": user}

    # ── Expenses ──────────────────────────────────────────────────────────

    @app.post(
        "/expenses",
        response_model=schemas.ExpenseResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Expenses"],
        summary="Create a new expense",
    )
    def create_expense(
        expense_in: schemas.ExpenseCreate,
        db: Session = Depends(get_db),
        user: schemas.UserPublic = Depends(auth.get_current_user),
    ):
        """
        Create an expense owned by the current user.

        - `quantity` defaults to 1, `is_recurring` to false,
          `tax_percent` and `discount` to 0.
        - `category` must be one of the fixed categories.
        """
        return crud.create_expense(db, user, expense_in)

    @app.get(
        "/expenses",
        response_model=list[schemas.ExpenseResponse],
        tags=["Expenses"],
        summary="List expenses with optional filter and sort",
    )
    def list_expenses(
        category: Optional[str] = Query(default=None, description="Category name, or ALL"),
        min_amount: Optional[Decimal] = Query(default=None, alias="minAmount", description="Inclusive lower bound"),
        max_amount: Optional[Decimal] = Query(default=None, alias="maxAmount", description="Inclusive upper bound"),
        sort_by: str = Query(default="created_at", alias="sortBy", description="created_at, amount, title or is_recurring"),
        order: str = Query(default="desc", description="asc or desc"),
        db: Session = Depends(get_db),
        user: schemas.UserPublic = Depends(auth.get_current_user),
    ):
        """Retrieve all of the current user's expenses. Newest first unless told otherwise."""
        return crud.get_expenses(
            db,
            user,
            category=category,
            min_amount=min_amount,
            max_amount=max_amount,
            sort_by=sort_by,
            order=order.lower(),
        )

    @app.get(
        "/expenses/categories",
        response_model=list[str],
        tags=["Expenses"],
        summary="Get all categories",
    )
    def list_categories():
        """The fixed category list, for use in filter dropdowns."""
        return [c.value for c in Category]

    @app.get(
        "/expenses/summary",
        response_model=schemas.ExpenseSummary,
        tags=["Expenses"],
        summary="Totals by category",
    )
    def expense_summary(
        db: Session = Depends(get_db),
        user: schemas.UserPublic = Depends(auth.get_current_user),
    ):
        """Effective amounts (after discount and tax) summed per category."""
        return crud.summarize_expenses(db, user)

    @app.get("/expenses/{expense_id}", response_model=schemas.ExpenseResponse, tags=["Expenses"])
    def get_expense(
        expense_id: str,
        db: Session = Depends(get_db),
        user: schemas.UserPublic = Depends(auth.get_current_user),
    ):
        return crud.get_expense(db, user, expense_id)

    @app.put("/expenses/{expense_id}", response_model=schemas.ExpenseResponse, tags=["Expenses"])
    def update_expense(
        expense_id: str,
        expense_in: schemas.ExpenseUpdate,
        db: Session = Depends(get_db),
        user: schemas.UserPublic = Depends(auth.get_current_user),
    ):
        """Only the fields present in the body change."""
        return crud.update_expense(db, user, expense_id, expense_in.changes())

    @app.delete("/expenses/{expense_id}", response_model=schemas.MessageResponse, tags=["Expenses"])
    def delete_expense(
        expense_id: str,
        db: Session = Depends(get_db),
        user: schemas.UserPublic = Depends(auth.get_current_user),
    ):
        crud.delete_expense(db, user, expense_id)
        return {"message": "Deleted successfully"}


app = create_app()
