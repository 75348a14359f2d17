"""SQLAlchemy-backed record store."""

from __future__ import annotations
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import JSON, ForeignKey, String, Text, TIMESTAMP, create_engine, delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ..models.records import ChangeHistoryEntry, ChangeStatus, PendingChange, Site, utcnow
from .storage import RecordStore

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class SiteRow(Base):
    __tablename__ = "sites"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, index=True)
    name: Mapped[str] = mapped_column(String)
    repo_name: Mapped[str] = mapped_column(String)
    vercel_project_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))


class PendingChangeRow(Base):
    __tablename__ = "pending_changes"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    site_id: Mapped[str] = mapped_column(ForeignKey("sites.id", ondelete="CASCADE"), index=True)
    branch_name: Mapped[str] = mapped_column(String)
    preview_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    user_message: Mapped[str] = mapped_column(Text)
    ai_summary: Mapped[str] = mapped_column(Text)
    files_changed: Mapped[list] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String, index=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))


class ChangeHistoryRow(Base):
    __tablename__ = "change_history"
    id: Mapped[str] = mapped_column(String, primary_key=True)
    site_id: Mapped[str] = mapped_column(ForeignKey("sites.id", ondelete="CASCADE"), index=True)
    change_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, unique=True)
    user_message: Mapped[str] = mapped_column(Text)
    ai_summary: Mapped[str] = mapped_column(Text)
    files_changed: Mapped[list] = mapped_column(JSON)
    committed_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))


def create_db_engine(database_url: str) -> Engine:
    """Create the engine, preparing SQLite file paths and thread settings."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        database = url.database
        if database and database != ":memory:":
            Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
            return create_engine(database_url, connect_args={"check_same_thread": False})
        # A single shared connection keeps an in-memory database alive across sessions
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


def _utc(value: datetime) -> datetime:
    # SQLite drops the offset on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _site(row: SiteRow) -> Site:
    return Site(
        id=row.id, user_id=row.user_id, name=row.name, repo_name=row.repo_name,
        vercel_project_id=row.vercel_project_id,
        created_at=_utc(row.created_at), updated_at=_utc(row.updated_at),
    )


def _change(row: PendingChangeRow) -> PendingChange:
    return PendingChange(
        id=row.id, site_id=row.site_id, branch_name=row.branch_name,
        preview_url=row.preview_url, user_message=row.user_message,
        ai_summary=row.ai_summary, files_changed=list(row.files_changed or []),
        status=ChangeStatus(row.status),
        created_at=_utc(row.created_at), updated_at=_utc(row.updated_at),
    )


def _history(row: ChangeHistoryRow) -> ChangeHistoryEntry:
    return ChangeHistoryEntry(
        id=row.id, site_id=row.site_id, change_id=row.change_id,
        user_message=row.user_message, ai_summary=row.ai_summary,
        files_changed=list(row.files_changed or []), committed_at=_utc(row.committed_at),
    )


class SqlRecordStore(RecordStore):
    """RecordStore over any SQLAlchemy-supported database."""

    def __init__(self, database_url: str, engine: Engine | None = None) -> None:
        self.engine = engine or create_db_engine(database_url)
        self._session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        Base.metadata.create_all(self.engine)

    def _session(self) -> Session:
        return self._session_factory()

    # sites
    def create_site(self, site: Site) -> Site:
        with self._session() as db, db.begin():
            db.add(SiteRow(**site.model_dump()))
        return site

    def get_site(self, site_id: str, user_id: str) -> Site | None:
        with self._session() as db:
            row = db.scalar(select(SiteRow).where(SiteRow.id == site_id, SiteRow.user_id == user_id))
            return _site(row) if row else None

    def list_sites(self, user_id: str) -> list[Site]:
        with self._session() as db:
            rows = db.scalars(
                select(SiteRow).where(SiteRow.user_id == user_id).order_by(SiteRow.created_at.desc())
            ).all()
            return [_site(r) for r in rows]

    def update_site(self, site: Site) -> Site:
        with self._session() as db, db.begin():
            row = db.get(SiteRow, site.id)
            if row is None:
                raise KeyError(site.id)
            row.name = site.name
            row.vercel_project_id = site.vercel_project_id
            row.updated_at = utcnow()
            db.flush()
            return _site(row)

    def delete_site(self, site_id: str) -> None:
        # Explicit child deletes; SQLite does not enforce ON DELETE by default
        with self._session() as db, db.begin():
            db.execute(delete(PendingChangeRow).where(PendingChangeRow.site_id == site_id))
            db.execute(delete(ChangeHistoryRow).where(ChangeHistoryRow.site_id == site_id))
            db.execute(delete(SiteRow).where(SiteRow.id == site_id))

    # pending changes
    def create_pending_change(self, change: PendingChange) -> PendingChange:
        data = change.model_dump()
        data["status"] = change.status.value
        with self._session() as db, db.begin():
            db.add(PendingChangeRow(**data))
        return change

    def get_pending_change(self, change_id: str, site_id: str) -> PendingChange | None:
        with self._session() as db:
            row = db.scalar(
                select(PendingChangeRow).where(
                    PendingChangeRow.id == change_id, PendingChangeRow.site_id == site_id
                )
            )
            return _change(row) if row else None

    def list_pending_changes(self, site_id: str, status: ChangeStatus | None = None,
                             limit: int | None = None) -> list[PendingChange]:
        query = select(PendingChangeRow).where(PendingChangeRow.site_id == site_id)
        if status is not None:
            query = query.where(PendingChangeRow.status == status.value)
        query = query.order_by(PendingChangeRow.created_at.desc())
        if limit is not None:
            query = query.limit(limit)
        with self._session() as db:
            return [_change(r) for r in db.scalars(query).all()]

    def update_preview_url(self, change_id: str, preview_url: str) -> None:
        with self._session() as db, db.begin():
            result = db.execute(
                update(PendingChangeRow)
                .where(PendingChangeRow.id == change_id)
                .values(preview_url=preview_url, updated_at=utcnow())
            )
            if result.rowcount == 0:
                raise KeyError(change_id)

    def transition_status(self, change_id: str, expected: ChangeStatus, new: ChangeStatus) -> bool:
        with self._session() as db, db.begin():
            result = db.execute(
                update(PendingChangeRow)
                .where(PendingChangeRow.id == change_id, PendingChangeRow.status == expected.value)
                .values(status=new.value, updated_at=utcnow())
            )
            return result.rowcount == 1

    # history
    def add_history(self, entry: ChangeHistoryEntry) -> ChangeHistoryEntry:
        with self._session() as db, db.begin():
            db.add(ChangeHistoryRow(**entry.model_dump()))
        return entry

    def add_history_once(self, entry: ChangeHistoryEntry) -> bool:
        try:
            with self._session() as db, db.begin():
                db.add(ChangeHistoryRow(**entry.model_dump()))
        except IntegrityError:
            logger.info(f"History entry for change {entry.change_id} already present")
            return False
        return True

    def get_history_for_change(self, change_id: str) -> ChangeHistoryEntry | None:
        with self._session() as db:
            row = db.scalar(
                select(ChangeHistoryRow).where(ChangeHistoryRow.change_id == change_id).limit(1)
            )
            return _history(row) if row else None

    def list_history(self, site_id: str, limit: int | None = None) -> list[ChangeHistoryEntry]:
        query = (
            select(ChangeHistoryRow)
            .where(ChangeHistoryRow.site_id == site_id)
            .order_by(ChangeHistoryRow.committed_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        with self._session() as db:
            return [_history(r) for r in db.scalars(query).all()]
