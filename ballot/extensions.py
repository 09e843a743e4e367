from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_marshmallow import Marshmallow

from .services.feed import ChangeFeed
from .services.cache import ReadThroughCache

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
ma = Marshmallow()
change_feed = ChangeFeed()
read_cache = ReadThroughCache(feed=change_feed)
