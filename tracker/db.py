"""
Database abstraction for SQL backends and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from typing import Dict, Iterator, Optional, Protocol

from sqlalchemy import Column, Float, Integer, Text, case, create_engine, literal, or_
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from tracker.errors import (
    ConstraintViolation,
    InvalidCredentials,
    ProjectNotFound,
    StorageError,
    UserNotFound,
)

logger = logging.getLogger(__name__)

# Python field name -> persisted column name.
USER_COLUMNS = {
    "id": "id",
    "name": "nombre",
    "email": "email",
    "password_secret": "pass",
}

PROJECT_COLUMNS = {
    "id": "id",
    "name": "nombre_proyecto",
    "owner_handle": "usuario_instagram",
    "ticket_info": "tickets",
    "setter_rate": "tarifa_setter",
    "sales_goal": "objetivo_ventas",
    "estimated_revenue": "facturacion_estimada",
    "member_ids": "usuarios",
}


class DbClient(Protocol):
    """Interface for database access."""

    def create_user(
        self, name: Optional[str], email: str, password_secret: str
    ) -> "UserRecord":
        ...

    def authenticate(self, email: str, password_secret: str) -> "UserRecord":
        ...

    def get_user_by_email(self, email: str) -> "UserRecord":
        ...

    def list_users(self) -> list["UserRecord"]:
        ...

    def create_project(self, fields: "ProjectFields") -> "ProjectRecord":
        ...

    def get_project(self, project_id: int) -> "ProjectRecord":
        ...

    def list_projects(self) -> list["ProjectRecord"]:
        ...

    def list_projects_matching(self, fragment: str) -> list["ProjectRecord"]:
        ...

    def update_project(self, project_id: int, fields: "ProjectFields") -> int:
        ...

    def update_project_revenue(
        self, project_id: int, estimated_revenue: Optional[float]
    ) -> int:
        ...

    def set_member_ids(self, project_id: int, member_ids: str) -> int:
        ...

    def append_member(self, project_id: int, user_id: int) -> int:
        ...

    def delete_project(self, project_id: int) -> int:
        ...

    def close(self) -> None:
        ...


@dataclass
class UserRecord:
    id: int
    name: Optional[str]
    email: str
    password_secret: str

    def as_dict(self) -> dict:
        """Public view of the user, keyed by column name. Never includes the secret."""
        return {
            "id": self.id,
            "nombre": self.name,
            "email": self.email,
        }


@dataclass
class ProjectFields:
    """Every mutable column of a project. Absent values are stored as NULL."""

    name: Optional[str] = None
    owner_handle: Optional[str] = None
    ticket_info: Optional[str] = None
    setter_rate: Optional[float] = None
    sales_goal: Optional[float] = None
    estimated_revenue: Optional[float] = None
    member_ids: Optional[str] = None


@dataclass
class ProjectRecord:
    id: int
    name: Optional[str] = None
    owner_handle: Optional[str] = None
    ticket_info: Optional[str] = None
    setter_rate: Optional[float] = None
    sales_goal: Optional[float] = None
    estimated_revenue: Optional[float] = None
    member_ids: Optional[str] = None

    @classmethod
    def from_fields(cls, project_id: int, fields: ProjectFields) -> "ProjectRecord":
        return cls(id=project_id, **asdict(fields))

    def as_dict(self) -> dict:
        return {PROJECT_COLUMNS[key]: value for key, value in asdict(self).items()}


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[int, UserRecord] = {}
        self.projects: Dict[int, ProjectRecord] = {}
        self._next_user_id = 1
        self._next_project_id = 1
        # Guards every read and write the way a storage engine would.
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.users.clear()
            self.projects.clear()
            self._next_user_id = 1
            self._next_project_id = 1

    def create_user(
        self, name: Optional[str], email: str, password_secret: str
    ) -> UserRecord:
        with self._lock:
            if any(user.email == email for user in self.users.values()):
                raise ConstraintViolation(
                    "UNIQUE constraint failed: usuarios.email"
                )
            record = UserRecord(
                id=self._next_user_id,
                name=name,
                email=email,
                password_secret=password_secret,
            )
            self.users[record.id] = record
            self._next_user_id += 1
            return replace(record)

    def authenticate(self, email: str, password_secret: str) -> UserRecord:
        with self._lock:
            for user in self.users.values():
                if user.email == email and user.password_secret == password_secret:
                    return replace(user)
        raise InvalidCredentials()

    def get_user_by_email(self, email: str) -> UserRecord:
        with self._lock:
            for user in self.users.values():
                if user.email == email:
                    return replace(user)
        raise UserNotFound()

    def list_users(self) -> list[UserRecord]:
        with self._lock:
            return [replace(user) for user in self.users.values()]

    def create_project(self, fields: ProjectFields) -> ProjectRecord:
        with self._lock:
            record = ProjectRecord.from_fields(self._next_project_id, fields)
            self.projects[record.id] = record
            self._next_project_id += 1
            return replace(record)

    def get_project(self, project_id: int) -> ProjectRecord:
        with self._lock:
            project = self.projects.get(project_id)
            if not project:
                raise ProjectNotFound()
            return replace(project)

    def list_projects(self) -> list[ProjectRecord]:
        with self._lock:
            return [replace(project) for project in self.projects.values()]

    def list_projects_matching(self, fragment: str) -> list[ProjectRecord]:
        with self._lock:
            return [
                replace(project)
                for project in self.projects.values()
                if fragment in (project.member_ids or "")
            ]

    def update_project(self, project_id: int, fields: ProjectFields) -> int:
        with self._lock:
            if project_id not in self.projects:
                return 0
            self.projects[project_id] = ProjectRecord.from_fields(project_id, fields)
            return 1

    def update_project_revenue(
        self, project_id: int, estimated_revenue: Optional[float]
    ) -> int:
        with self._lock:
            project = self.projects.get(project_id)
            if not project:
                return 0
            project.estimated_revenue = estimated_revenue
            return 1

    def set_member_ids(self, project_id: int, member_ids: str) -> int:
        with self._lock:
            project = self.projects.get(project_id)
            if not project:
                return 0
            project.member_ids = member_ids
            return 1

    def append_member(self, project_id: int, user_id: int) -> int:
        with self._lock:
            project = self.projects.get(project_id)
            if not project:
                return 0
            token = str(user_id)
            project.member_ids = (
                f"{project.member_ids},{token}" if project.member_ids else token
            )
            return 1

    def delete_project(self, project_id: int) -> int:
        with self._lock:
            return 1 if self.projects.pop(project_id, None) else 0

    def close(self) -> None:
        pass


@contextmanager
def _storage_errors() -> Iterator[None]:
    """Translate SQLAlchemy failures into the tracker error taxonomy."""
    try:
        yield
    except IntegrityError as exc:
        raise ConstraintViolation(str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (SQLite by default,
    Postgres in production; an in-memory SQLite URL for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        url = make_url(database_url)
        engine_kwargs: dict = {"future": True, "pool_pre_ping": True}
        if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
            # One shared connection, otherwise every checkout sees an empty database.
            engine_kwargs.update(
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        elif url.get_backend_name() != "sqlite":
            engine_kwargs["pool_recycle"] = 1800
        with _storage_errors():
            self.engine = create_engine(url, **engine_kwargs)
            self.Session = sessionmaker(
                bind=self.engine, class_=Session, expire_on_commit=False, future=True
            )
            Base.metadata.create_all(self.engine)
        logger.info(
            "Connected to %s database; tables %s ready",
            url.get_backend_name(),
            ", ".join(sorted(Base.metadata.tables)),
        )

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        return UserRecord(
            id=row.id,
            name=row.name,
            email=row.email,
            password_secret=row.password_secret,
        )

    def _to_project_record(self, row: "ProjectRow") -> ProjectRecord:
        return ProjectRecord(
            id=row.id,
            name=row.name,
            owner_handle=row.owner_handle,
            ticket_info=row.ticket_info,
            setter_rate=row.setter_rate,
            sales_goal=row.sales_goal,
            estimated_revenue=row.estimated_revenue,
            member_ids=row.member_ids,
        )

    def create_user(
        self, name: Optional[str], email: str, password_secret: str
    ) -> UserRecord:
        with _storage_errors(), self.Session() as session:
            row = UserRow(name=name, email=email, password_secret=password_secret)
            session.add(row)
            session.commit()
            return self._to_user_record(row)

    def authenticate(self, email: str, password_secret: str) -> UserRecord:
        with _storage_errors(), self.Session() as session:
            row = (
                session.query(UserRow)
                .filter(
                    UserRow.email == email,
                    UserRow.password_secret == password_secret,
                )
                .first()
            )
            if not row:
                raise InvalidCredentials()
            return self._to_user_record(row)

    def get_user_by_email(self, email: str) -> UserRecord:
        with _storage_errors(), self.Session() as session:
            row = session.query(UserRow).filter(UserRow.email == email).first()
            if not row:
                raise UserNotFound()
            return self._to_user_record(row)

    def list_users(self) -> list[UserRecord]:
        with _storage_errors(), self.Session() as session:
            rows = session.query(UserRow).order_by(UserRow.id).all()
            return [self._to_user_record(row) for row in rows]

    def create_project(self, fields: ProjectFields) -> ProjectRecord:
        with _storage_errors(), self.Session() as session:
            row = ProjectRow(**asdict(fields))
            session.add(row)
            session.commit()
            return self._to_project_record(row)

    def get_project(self, project_id: int) -> ProjectRecord:
        with _storage_errors(), self.Session() as session:
            row = session.get(ProjectRow, project_id)
            if not row:
                raise ProjectNotFound()
            return self._to_project_record(row)

    def list_projects(self) -> list[ProjectRecord]:
        with _storage_errors(), self.Session() as session:
            rows = session.query(ProjectRow).order_by(ProjectRow.id).all()
            return [self._to_project_record(row) for row in rows]

    def list_projects_matching(self, fragment: str) -> list[ProjectRecord]:
        with _storage_errors(), self.Session() as session:
            rows = (
                session.query(ProjectRow)
                .filter(ProjectRow.member_ids.contains(fragment, autoescape=True))
                .order_by(ProjectRow.id)
                .all()
            )
            return [self._to_project_record(row) for row in rows]

    def _update(self, project_id: int, values: dict) -> int:
        with _storage_errors(), self.Session() as session:
            updated = (
                session.query(ProjectRow)
                .filter(ProjectRow.id == project_id)
                .update(values, synchronize_session=False)
            )
            session.commit()
            return updated or 0

    def update_project(self, project_id: int, fields: ProjectFields) -> int:
        return self._update(
            project_id,
            {getattr(ProjectRow, key): value for key, value in asdict(fields).items()},
        )

    def update_project_revenue(
        self, project_id: int, estimated_revenue: Optional[float]
    ) -> int:
        return self._update(
            project_id, {ProjectRow.estimated_revenue: estimated_revenue}
        )

    def set_member_ids(self, project_id: int, member_ids: str) -> int:
        return self._update(project_id, {ProjectRow.member_ids: member_ids})

    def append_member(self, project_id: int, user_id: int) -> int:
        token = str(user_id)
        current = ProjectRow.member_ids
        appended = case(
            (or_(current.is_(None), current == ""), literal(token)),
            else_=current + "," + token,
        )
        return self._update(project_id, {ProjectRow.member_ids: appended})

    def delete_project(self, project_id: int) -> int:
        with _storage_errors(), self.Session() as session:
            deleted = (
                session.query(ProjectRow)
                .filter(ProjectRow.id == project_id)
                .delete(synchronize_session=False)
            )
            session.commit()
            return deleted or 0

    def close(self) -> None:
        self.engine.dispose()
        logger.info("Closed the database connection.")


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "usuarios"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(USER_COLUMNS["name"], Text)
    email = Column(Text, unique=True)
    password_secret = Column(USER_COLUMNS["password_secret"], Text)


class ProjectRow(Base):
    __tablename__ = "proyectos"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(PROJECT_COLUMNS["name"], Text)
    owner_handle = Column(PROJECT_COLUMNS["owner_handle"], Text)
    ticket_info = Column(PROJECT_COLUMNS["ticket_info"], Text)
    setter_rate = Column(PROJECT_COLUMNS["setter_rate"], Float)
    sales_goal = Column(PROJECT_COLUMNS["sales_goal"], Float)
    estimated_revenue = Column(PROJECT_COLUMNS["estimated_revenue"], Float)
    member_ids = Column(PROJECT_COLUMNS["member_ids"], Text)
