import uuid

from sqlalchemy import String, TypeDecorator


class GUID(TypeDecorator):
    """Cross-dialect UUID storage.

    Values are stored as CHAR(36) strings and come back as ``uuid.UUID``.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return uuid.UUID(str(value))
