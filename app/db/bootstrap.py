from app.db import session as db_session
from app.db.base import Base
from app.db.models import Comment, Profile, Story  # noqa: F401


def init_db() -> None:
    Base.metadata.create_all(bind=db_session.engine)
