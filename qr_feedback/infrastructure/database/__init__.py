from .connection import (
    create_engine,
    dispose_engine,
    get_engine,
    get_session_maker,
    init_db,
    make_session_maker,
)

__all__ = [
    "create_engine",
    "dispose_engine",
    "get_engine",
    "get_session_maker",
    "init_db",
    "make_session_maker",
]
