"""Column types shared by the models."""

from sqlalchemy import Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSONB(astext_type=Text()).with_variant(JSON(), "sqlite")
