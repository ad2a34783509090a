from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from sqlmodel import Field, Session, SQLModel, create_engine, select


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


@dataclass
class PlayerRecord:
    id: str
    handle: str
    created_at: str


@dataclass
class ScoreRecord:
    id: str
    player_id: Optional[str]
    session_id: str
    variant: str
    level_key: str
    metrics: dict[str, Any]
    created_at: str


class JsonScoreRepository:
    """Score store kept in a single JSON document, rewritten atomically."""

    def __init__(self, path: str | Path, schema_version: int = 1):
        self.path = Path(path)
        self.schema_version = schema_version
        self._ensure_store()

    def _empty_doc(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "players": {},
            "scores": {},
        }

    def _ensure_store(self) -> None:
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write_doc(self._empty_doc())

    def _read_doc(self) -> dict[str, Any]:
        if not self.path.exists():
            return self._empty_doc()
        raw = self.path.read_text(encoding="utf-8").strip()
        if not raw:
            return self._empty_doc()
        doc = json.loads(raw)
        doc.setdefault("schema_version", self.schema_version)
        doc.setdefault("players", {})
        doc.setdefault("scores", {})
        return doc

    def _write_doc(self, doc: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(doc, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def _save_doc(self, doc: dict[str, Any]) -> None:
        doc["schema_version"] = self.schema_version
        self._write_doc(doc)

    # Player ops
    def get_player(self, player_id: str) -> dict[str, Any] | None:
        return self._read_doc()["players"].get(player_id)

    def get_or_create_player(self, handle: str) -> dict[str, Any]:
        doc = self._read_doc()
        for player in doc["players"].values():
            if player.get("handle") == handle:
                return player

        record = asdict(PlayerRecord(id=str(uuid4()), handle=handle, created_at=_utc_now_iso()))
        doc["players"][record["id"]] = record
        self._save_doc(doc)
        return record

    # Score ops
    def record_score(
        self,
        player_id: str | None,
        session_id: str,
        variant: str,
        level_key: str,
        metrics: dict[str, Any],
    ) -> dict[str, Any]:
        doc = self._read_doc()
        record = asdict(
            ScoreRecord(
                id=str(uuid4()),
                player_id=player_id,
                session_id=session_id,
                variant=variant,
                level_key=level_key,
                metrics=metrics,
                created_at=_utc_now_iso(),
            )
        )
        doc["scores"][record["id"]] = record
        self._save_doc(doc)
        return record

    def list_scores(self, variant: str | None = None, player_id: str | None = None) -> list[dict[str, Any]]:
        """Stored scores in insertion order, optionally filtered."""
        items = list(self._read_doc()["scores"].values())
        if variant is not None:
            items = [s for s in items if s.get("variant") == variant]
        if player_id is not None:
            items = [s for s in items if s.get("player_id") == player_id]
        return items

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# SQLModel tables for SqliteScoreRepository
# ---------------------------------------------------------------------------


class PlayerModel(SQLModel, table=True):
    __tablename__ = "players"
    id: str = Field(primary_key=True)
    handle: str = Field(index=True)
    created_at: str


class ScoreModel(SQLModel, table=True):
    __tablename__ = "scores"
    seq: Optional[int] = Field(default=None, primary_key=True)
    id: str = Field(index=True, unique=True)
    player_id: Optional[str] = Field(default=None, index=True)
    session_id: str
    variant: str = Field(index=True)
    level_key: str = ""
    metrics_json: str = Field(sa_column_kwargs={"name": "metrics"})
    created_at: str


def _score_row_to_dict(row: ScoreModel) -> dict[str, Any]:
    return {
        "id": row.id,
        "player_id": row.player_id,
        "session_id": row.session_id,
        "variant": row.variant,
        "level_key": row.level_key,
        "metrics": json.loads(row.metrics_json),
        "created_at": row.created_at,
    }


class SqliteScoreRepository:
    """SQLite-backed score store using SQLModel. Same interface as JsonScoreRepository."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite:///{self.path}"
        self.engine = create_engine(url, connect_args={"check_same_thread": False})
        SQLModel.metadata.create_all(self.engine)
        self._verify_schema()

    def _verify_schema(self) -> None:
        """Drop and recreate tables if the existing schema is incompatible."""
        try:
            with Session(self.engine) as session:
                session.exec(select(PlayerModel).limit(1)).all()
                session.exec(select(ScoreModel).limit(1)).all()
        except Exception:
            SQLModel.metadata.drop_all(self.engine)
            SQLModel.metadata.create_all(self.engine)

    # Player ops
    def get_player(self, player_id: str) -> dict[str, Any] | None:
        with Session(self.engine) as session:
            row = session.get(PlayerModel, player_id)
            if row is None:
                return None
            return {"id": row.id, "handle": row.handle, "created_at": row.created_at}

    def get_or_create_player(self, handle: str) -> dict[str, Any]:
        with Session(self.engine) as session:
            row = session.exec(select(PlayerModel).where(PlayerModel.handle == handle)).first()
            if row is None:
                row = PlayerModel(id=str(uuid4()), handle=handle, created_at=_utc_now_iso())
                session.add(row)
                session.commit()
                session.refresh(row)
            return {"id": row.id, "handle": row.handle, "created_at": row.created_at}

    # Score ops
    def record_score(
        self,
        player_id: str | None,
        session_id: str,
        variant: str,
        level_key: str,
        metrics: dict[str, Any],
    ) -> dict[str, Any]:
        row = ScoreModel(
            id=str(uuid4()),
            player_id=player_id,
            session_id=session_id,
            variant=variant,
            level_key=level_key,
            metrics_json=json.dumps(metrics),
            created_at=_utc_now_iso(),
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _score_row_to_dict(row)

    def list_scores(self, variant: str | None = None, player_id: str | None = None) -> list[dict[str, Any]]:
        with Session(self.engine) as session:
            stmt = select(ScoreModel)
            if variant is not None:
                stmt = stmt.where(ScoreModel.variant == variant)
            if player_id is not None:
                stmt = stmt.where(ScoreModel.player_id == player_id)
            rows = session.exec(stmt.order_by(ScoreModel.seq)).all()
            return [_score_row_to_dict(row) for row in rows]

    def close(self) -> None:
        self.engine.dispose()


def open_repo(path: str | Path):
    """Return SqliteScoreRepository for .db paths, JsonScoreRepository otherwise."""
    path = Path(path)
    if path.suffix == ".db":
        return SqliteScoreRepository(path)
    return JsonScoreRepository(path)
