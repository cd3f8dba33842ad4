"""
todo.py — ORM Model for Todo Items

Purpose:
- One task owned by exactly one user.
- Deleting a user removes their todos (FK cascade).
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.models.user import _new_id, utcnow


class Todo(Base):
    __tablename__ = "todo"

    id = Column(String(36), primary_key=True, default=_new_id)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)

    # Owner
    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    user = relationship("User", back_populates="todos")

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_todo_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<Todo {self.id} | {self.title!r}>"
