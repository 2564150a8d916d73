"""Routes handling task creation and listing."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...core.config import Settings
from ...deps import (
    AdminUserDependency,
    CurrentUserDependency,
    DatabaseSessionDependency,
    DispatcherDependency,
    SettingsDependency,
)
from ...notifications import TaskSnapshot
from ...schemas import (
    MessageResponse,
    NotificationSummary,
    TaskCreate,
    TaskCreateResponse,
    TaskListResponse,
    UserListResponse,
    UserPublic,
)
from ...services import TaskService, UserService
from .users import save_device_token

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _dispatch_inline(settings: Settings) -> bool:
    return settings.push_dispatch_mode == "inline"


@router.post(
    "",
    response_model=TaskCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a task and notify its assignees",
)
async def create_task(
    payload: TaskCreate,
    session: DatabaseSessionDependency,
    current_user: AdminUserDependency,
    dispatcher: DispatcherDependency,
    settings: SettingsDependency,
) -> TaskCreateResponse:
    service = TaskService(session)
    task, assignee_ids = await service.create_task(
        creator_id=current_user.id,
        title=payload.title,
        description=payload.description,
        assignee_ids=payload.assigned_to,
    )
    snapshot = TaskSnapshot.from_task(task)
    task_read = service.read(task, assignee_ids)

    if _dispatch_inline(settings):
        report = await dispatcher.dispatch_and_wait(snapshot, assignee_ids)
        return TaskCreateResponse(
            message="Task created",
            task=task_read,
            notifications=NotificationSummary.from_cycle(report),
        )

    dispatcher.schedule(snapshot, assignee_ids)
    return TaskCreateResponse(message="Task created", task=task_read)


@router.get("", response_model=TaskListResponse, summary="List tasks visible to the caller")
async def list_tasks(
    session: DatabaseSessionDependency,
    current_user: CurrentUserDependency,
) -> TaskListResponse:
    return TaskListResponse(tasks=await TaskService(session).list_tasks_for(current_user))


@router.get("/my", response_model=TaskListResponse, summary="List tasks assigned to the caller")
async def list_my_tasks(
    session: DatabaseSessionDependency,
    current_user: CurrentUserDependency,
) -> TaskListResponse:
    return TaskListResponse(tasks=await TaskService(session).list_tasks_for_user(current_user.id))


@router.get("/users", response_model=UserListResponse, summary="List users that tasks can be assigned to")
async def list_assignable_users(
    session: DatabaseSessionDependency,
    current_user: CurrentUserDependency,
) -> UserListResponse:
    users = await UserService(session).list_users()
    return UserListResponse(users=[UserPublic.model_validate(user) for user in users])


router.add_api_route(
    "/device-token",
    save_device_token,
    methods=["POST"],
    response_model=MessageResponse,
    summary="Register a device push token for the caller",
)
