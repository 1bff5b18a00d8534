"""Database module."""

from db.cosmos_session import close_cosmos, get_container

__all__ = ["get_container", "close_cosmos"]
