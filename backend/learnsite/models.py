from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text
from .db import Base


class CacheEntry(Base):
	__tablename__ = "cache_entries"
	# Keys look like "<kind>-<prompt>-<level>-<contentType>[-<page>-<title>]"
	key = Column(String(2048), primary_key=True, index=True)
	value = Column(Text, nullable=False)
	# Estimated UTF-16 footprint of key + value
	size_bytes = Column(Integer, default=0, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
