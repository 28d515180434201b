import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-key")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///quotedesk.db")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # quotation numbering: optimistic retry policy
    QUOTATION_NUMBER_MAX_ATTEMPTS = int(os.getenv("QUOTATION_NUMBER_MAX_ATTEMPTS", "3"))
    QUOTATION_NUMBER_BACKOFF_MS = int(os.getenv("QUOTATION_NUMBER_BACKOFF_MS", "100"))

    DEFAULT_QUOTATION_PREFIX = os.getenv("DEFAULT_QUOTATION_PREFIX", "QT")
    DEFAULT_VALIDITY_DAYS = int(os.getenv("DEFAULT_VALIDITY_DAYS", "30"))
