from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

import config
import database
from ai_service import TaskAI, create_task_ai
from auth import get_current_user, hash_password, login_user, logout_user, verify_password
from database import (
    UsernameTakenError,
    create_task_db,
    create_user_db,
    delete_task_db,
    get_tasks_for_user,
    get_user_by_username_db,
    update_task_db,
    update_user_password_db,
)
from models import (
    PasswordChange,
    Task,
    TaskCreate,
    TaskInsights,
    TaskReport,
    TaskUpdate,
    User,
    UserCredentials,
    UserPublic,
)
from report_markdown import render_report_markdown, report_filename

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

NO_TASKS_MESSAGE = "No tasks found. Please add some tasks before generating a report."


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: no API key, no server
    app.state.task_ai = create_task_ai()
    database.init_db()
    logger.info("Task AI ready (model=%s)", app.state.task_ai.model)
    yield
    # Shutdown (nothing to do)


app = FastAPI(title="Task Manager", lifespan=lifespan)

if config.SESSION_SECRET == config.DEFAULT_SESSION_SECRET:
    logger.warning("SESSION_SECRET is not set; using the development default")

app.add_middleware(
    SessionMiddleware,
    secret_key=config.SESSION_SECRET,
    max_age=config.SESSION_MAX_AGE,
    same_site="lax",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error."},
    )


def get_task_ai(request: Request) -> TaskAI:
    """The AI service built at startup."""
    return request.app.state.task_ai


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


# Identity
@app.post("/api/register", status_code=status.HTTP_201_CREATED)
def register(credentials: UserCredentials, request: Request) -> UserPublic:
    try:
        user = create_user_db(credentials.username, hash_password(credentials.password))
    except UsernameTakenError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
    login_user(request, user)
    return UserPublic.from_user(user)


@app.post("/api/login")
def login(credentials: UserCredentials, request: Request) -> UserPublic:
    user = get_user_by_username_db(credentials.username)
    if user is None or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    login_user(request, user)
    return UserPublic.from_user(user)


@app.post("/api/logout")
def logout(request: Request) -> dict:
    logout_user(request)
    return {"status": "logged out"}


@app.get("/api/user")
def current_user(user: User = Depends(get_current_user)) -> UserPublic:
    return UserPublic.from_user(user)


@app.post("/api/user/password")
def change_password(change: PasswordChange, user: User = Depends(get_current_user)) -> dict:
    if not verify_password(change.current_password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Current password is incorrect")
    update_user_password_db(user.id, hash_password(change.new_password))
    return {"status": "password updated"}


# Tasks
@app.get("/api/tasks")
def get_tasks(user: User = Depends(get_current_user)) -> list[Task]:
    return get_tasks_for_user(user.id)


@app.post("/api/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    user: User = Depends(get_current_user),
    task_ai: TaskAI = Depends(get_task_ai),
) -> Task:
    ai_tags = await task_ai.generate_task_tags(task_data.title, task_data.description)
    return create_task_db(
        user.id,
        task_data.title,
        task_data.description,
        task_data.priority,
        task_data.due_date.isoformat() if task_data.due_date else None,
        ai_tags,
    )


@app.patch("/api/tasks/{task_id}")
def update_task(task_id: int, task_data: TaskUpdate, user: User = Depends(get_current_user)) -> Task:
    result = update_task_db(task_id, user.id, **task_data.changes())
    if not result:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return result


@app.delete("/api/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: int, user: User = Depends(get_current_user)) -> Response:
    # Already-absent tasks are not an error
    delete_task_db(task_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Insights and reports
@app.get("/api/insights")
async def get_insights(
    user: User = Depends(get_current_user),
    task_ai: TaskAI = Depends(get_task_ai),
) -> TaskInsights:
    return await task_ai.generate_task_insights(get_tasks_for_user(user.id))


@app.post("/api/insights/refresh")
async def refresh_insights(
    user: User = Depends(get_current_user),
    task_ai: TaskAI = Depends(get_task_ai),
) -> TaskInsights:
    """Same as GET /api/insights; exists so the UI can force a refetch."""
    return await task_ai.generate_task_insights(get_tasks_for_user(user.id))


async def build_report(user: User, task_ai: TaskAI) -> TaskReport:
    """Insights first, then the report built on them."""
    tasks = get_tasks_for_user(user.id)
    if not tasks:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NO_TASKS_MESSAGE)

    logger.info("Generating report for user %s with %d tasks", user.id, len(tasks))
    try:
        insights = await task_ai.generate_task_insights(tasks)
        report = await task_ai.generate_report(tasks, insights, UserPublic.from_user(user))
    except Exception:
        logger.exception("Report generation failed for user %s", user.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to generate report")
    return report


@app.get("/api/report")
async def get_report(
    user: User = Depends(get_current_user),
    task_ai: TaskAI = Depends(get_task_ai),
) -> TaskReport:
    return await build_report(user, task_ai)


@app.get("/api/report/markdown")
async def get_report_markdown(
    user: User = Depends(get_current_user),
    task_ai: TaskAI = Depends(get_task_ai),
) -> Response:
    report = await build_report(user, task_ai)
    filename = report_filename(datetime.now(timezone.utc).date())
    return Response(
        content=render_report_markdown(report),
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
