import uuid

from sqlalchemy import JSON, String, TypeDecorator
from sqlalchemy.dialects.postgresql import JSONB


class GUID(TypeDecorator):
    """UUID column stored as CHAR(36) on every dialect.

    Accepts ``uuid.UUID`` or any string ``uuid.UUID`` can parse, so ids
    that arrive as path parameters or JSON strings bind without conversion
    at the call site.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return uuid.UUID(str(value))


# Condition/effect trees and game state are free-form JSON documents.
JSONType = JSON().with_variant(JSONB(), "postgresql")
