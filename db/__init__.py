"""Database package for the outreach engine."""
from db.connection import Database

__all__ = ["Database"]
