from .base import Base
from .session import engine, SessionLocal


def init_db():
    """创建全部数据表"""
    import app.models  # noqa: F401  注册模型到 metadata

    Base.metadata.create_all(bind=engine)


__all__ = ["Base", "engine", "SessionLocal", "init_db"]
