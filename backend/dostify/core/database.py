from sqlmodel import SQLModel, create_engine, Session

from dostify.core.config import settings

engine = create_engine(
    settings.sqlalchemy_url,
    echo=settings.debug,
    connect_args={"check_same_thread": False},
)


def init_db() -> None:
    import dostify.models  # noqa: F401 - ensure models are registered
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
