"""
Persistence helpers for Todo records. Every query is scoped to one owner.
"""

from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.todo import Todo


class TodoRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def list_for_user(self, user_id: str) -> List[Todo]:
        return list(
            self._session.execute(
                select(Todo)
                .where(Todo.user_id == user_id)
                .order_by(Todo.created_at.desc())
            ).scalars()
        )

    def find_for_user(self, todo_id: str, user_id: str) -> Optional[Todo]:
        return self._session.execute(
            select(Todo).where(Todo.id == todo_id).where(Todo.user_id == user_id)
        ).scalar_one_or_none()

    def create(self, user_id: str, title: str, description: Optional[str] = None) -> Todo:
        todo = Todo(user_id=user_id, title=title, description=description, completed=False)
        self._session.add(todo)
        self._session.commit()
        self._session.refresh(todo)
        return todo

    def update(self, todo: Todo, **fields: Any) -> Todo:
        for key, value in fields.items():
            setattr(todo, key, value)
        self._session.commit()
        self._session.refresh(todo)
        return todo

    def delete(self, todo: Todo) -> None:
        self._session.delete(todo)
        self._session.commit()
