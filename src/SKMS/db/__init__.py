# src/SKMS/db/__init__.py
from .session import build_engine, build_sessionmaker, create_all, get_db, get_engine, get_sessionmaker

__all__ = ["build_engine", "build_sessionmaker", "create_all", "get_db", "get_engine", "get_sessionmaker"]
