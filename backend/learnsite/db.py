from __future__ import annotations
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./learnsite_cache.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema(bind=None) -> None:
	bind = bind or engine
	try:
		inspector = inspect(bind)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	if "cache_entries" in tables:
		cols = {c["name"] for c in inspector.get_columns("cache_entries")}
		with bind.begin() as conn:
			if "size_bytes" not in cols:
				conn.exec_driver_sql("ALTER TABLE cache_entries ADD COLUMN size_bytes INTEGER DEFAULT 0 NOT NULL")
				# UTF-16 size, same estimate as the cache service
				rows = conn.exec_driver_sql("SELECT key, value FROM cache_entries").fetchall()
				for key, value in rows:
					conn.execute(
						text("UPDATE cache_entries SET size_bytes = :size WHERE key = :key"),
						{"size": len((key + value).encode("utf-16-le")), "key": key},
					)
