"""Persistence layer: the shared DBStorage instance.

create_app() configures the engine from DATABASE_URL and creates the tables.
"""
from models.db_storage import DBStorage

storage = DBStorage()
