from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from tenant_billing.core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(url: str, echo: bool = False):
    """Crear engine síncrono; SQLite se usa en local y en tests."""
    logger.debug(f"Creating database engine for backend: {url.split(':', 1)[0]}")
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if url in ("sqlite://", "sqlite:///:memory:") else None,
            echo=echo
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        echo=echo
    )


engine = build_engine(settings.database_url, echo=settings.DEBUG and settings.ENVIRONMENT != "test")

# expire_on_commit=False: los agregados se devuelven al caller después del commit
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

def _constructor_with_defaults(self, **kwargs):
    """Constructor for mapped classes.

    Applies scalar and callable column defaults at construction time, so
    domain rules (is_active, stock tracking, ids of new line items) hold
    before the first flush.
    """
    cls = type(self)
    for prop in inspect(cls).column_attrs:
        default = prop.columns[0].default
        if prop.key in kwargs or default is None:
            continue
        if default.is_scalar:
            kwargs[prop.key] = default.arg
        elif default.is_callable:
            kwargs[prop.key] = default.arg(None)
    for key, value in kwargs.items():
        if not hasattr(cls, key):
            raise TypeError(f"{key!r} is an invalid keyword argument for {cls.__name__}")
        setattr(self, key, value)


Base = declarative_base(constructor=_constructor_with_defaults)