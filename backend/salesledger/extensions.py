# Overview: Flask extension instances for database, migrations and the query cache.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.cache_service import QueryCache

db = SQLAlchemy()
migrate = Migrate()
query_cache = QueryCache()
