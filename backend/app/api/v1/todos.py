"""
todos.py — Todo CRUD Endpoints

Purpose:
- List, read, create, update and delete the authenticated user's todos.
- Every route requires `Authorization: Bearer <token>`.
- Another user's todo is reported as "Todo not found", never as forbidden.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from app.api.deps import get_current_identity, get_todo_repository
from app.core.errors import NotFoundError
from app.core.logging import get_logger
from app.core.sanitize import CleanText, NonEmptyText
from app.models.todo import Todo
from app.services.authenticator import Identity
from app.services.repositories.todo_repository import TodoRepository

logger = get_logger(__name__)

router = APIRouter(
    prefix="/todos",
    tags=["todos"]
)

TODO_NOT_FOUND = "Todo not found"


# -----------------------------------------------------------------------------
# Request / Response Schemas
# -----------------------------------------------------------------------------

def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class TodoCreateRequest(BaseModel):
    """Title and description are HTML-cleaned; a title that cleans to nothing is rejected."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: NonEmptyText
    description: Optional[CleanText] = None

    @field_validator("description")
    @classmethod
    def empty_description(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class TodoUpdateRequest(BaseModel):
    """Only fields present in the body are changed."""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[NonEmptyText] = None
    description: Optional[CleanText] = None
    completed: Optional[bool] = None


class TodoOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    description: Optional[str] = None
    completed: bool
    user_id: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, todo: Todo) -> "TodoOut":
        return cls(
            id=todo.id,
            title=todo.title,
            description=todo.description,
            completed=todo.completed,
            user_id=todo.user_id,
            created_at=todo.created_at,
            updated_at=todo.updated_at,
        )


class TodoResponse(BaseModel):
    message: str
    todo: TodoOut


class TodoListResponse(BaseModel):
    message: str
    todos: List[TodoOut]


class MessageResponse(BaseModel):
    message: str


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

def _get_owned(todos: TodoRepository, todo_id: str, identity: Identity) -> Todo:
    todo = todos.find_for_user(todo_id, identity.id)
    if todo is None:
        raise NotFoundError(TODO_NOT_FOUND)
    return todo


@router.get("", response_model=TodoListResponse)
def list_todos(
    identity: Identity = Depends(get_current_identity),
    todos: TodoRepository = Depends(get_todo_repository),
):
    """GET /todos — newest first."""
    rows = todos.list_for_user(identity.id)
    return TodoListResponse(
        message="Todos retrieved successfully",
        todos=[TodoOut.from_row(row) for row in rows],
    )


@router.get("/{todo_id}", response_model=TodoResponse)
def get_todo(
    todo_id: str,
    identity: Identity = Depends(get_current_identity),
    todos: TodoRepository = Depends(get_todo_repository),
):
    todo = _get_owned(todos, todo_id, identity)
    return TodoResponse(message="Todo retrieved successfully", todo=TodoOut.from_row(todo))


@router.post("", response_model=TodoResponse, status_code=status.HTTP_201_CREATED)
def create_todo(
    payload: TodoCreateRequest,
    identity: Identity = Depends(get_current_identity),
    todos: TodoRepository = Depends(get_todo_repository),
):
    todo = todos.create(identity.id, title=payload.title, description=payload.description)
    logger.info("User %s created todo %s", identity.id, todo.id)
    return TodoResponse(message="Todo created successfully", todo=TodoOut.from_row(todo))


@router.put("/{todo_id}", response_model=TodoResponse)
def update_todo(
    todo_id: str,
    payload: TodoUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    todos: TodoRepository = Depends(get_todo_repository),
):
    todo = _get_owned(todos, todo_id, identity)

    changes = payload.model_dump(exclude_unset=True)
    if "title" in changes and changes["title"] is None:
        # An explicit null title would violate NOT NULL; treat it as "leave unchanged"
        changes.pop("title")
    if "completed" in changes and changes["completed"] is None:
        changes.pop("completed")
    if "description" in changes:
        changes["description"] = _blank_to_none(changes["description"])

    todo = todos.update(todo, **changes)
    return TodoResponse(message="Todo updated successfully", todo=TodoOut.from_row(todo))


@router.delete("/{todo_id}", response_model=MessageResponse)
def delete_todo(
    todo_id: str,
    identity: Identity = Depends(get_current_identity),
    todos: TodoRepository = Depends(get_todo_repository),
):
    todo = _get_owned(todos, todo_id, identity)
    todos.delete(todo)
    logger.info("User %s deleted todo %s", identity.id, todo_id)
    return MessageResponse(message="Todo deleted successfully")
