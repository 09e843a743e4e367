import os
from datetime import timedelta
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent  # project root (where wsgi.py is)
load_dotenv(BASE_DIR / ".env")

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'ballot.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Tokens are minted by the external auth service with the shared key
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-dev-secret")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        minutes=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_MIN", "30"))
    )

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Contestant images
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER")  # unset = uploads disabled
    IMAGE_BASE_URL = os.getenv("IMAGE_BASE_URL", "/media/contestants")
    MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

    # Change feed (dashboard live updates)
    CHANGE_FEED_HISTORY = int(os.getenv("CHANGE_FEED_HISTORY", "500"))
    CHANGE_FEED_QUEUE_SIZE = int(os.getenv("CHANGE_FEED_QUEUE_SIZE", "100"))

    VOTE_HISTORY_MAX_LIMIT = int(os.getenv("VOTE_HISTORY_MAX_LIMIT", "200"))
    CACHE_TTL_SECONDS = float(os.getenv("CACHE_TTL_SECONDS", "5"))

    SWAGGER = {"title": "Ballot Election API", "uiversion": 3}
    REQUEST_ID_HEADER = os.getenv("REQUEST_ID_HEADER", "X-Request-Id")
