"""
SQLAlchemy model for the to-do table. Column names match the JSON field names.
"""
from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Todo(Base):
    __tablename__ = "todos"

    ID: Mapped[str] = mapped_column(String(64), primary_key=True)
    OwnerID: Mapped[str] = mapped_column(String(255), nullable=False)
    Title: Mapped[str] = mapped_column(Text, nullable=False)
    Completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def as_dict(self) -> dict:
        return {
            "ID": self.ID,
            "OwnerID": self.OwnerID,
            "Title": self.Title,
            "Completed": self.Completed,
        }
