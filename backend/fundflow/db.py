from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session
from fundflow.core.settings import settings

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

class Base(DeclarativeBase):
    pass


# dependency padrão FastAPI
def get_db() -> "Session":
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def import_all_models() -> None:
    # Import explícito dos models para registrar no metadata
    # (sem isso, create_all() cria 0 tabelas)
    import fundflow.models.user  # noqa: F401
    import fundflow.models.category  # noqa: F401
    import fundflow.models.transaction  # noqa: F401
