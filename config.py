import os
from dotenv import load_dotenv
load_dotenv()

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///vault.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # unset -> webhook jobs run synchronously in the request
    REDIS_URL = os.getenv("REDIS_URL")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # JSON API only; forms are validated without CSRF tokens
    WTF_CSRF_ENABLED = False
    # session cookie is not sent on cross-site form posts
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"
    REMEMBER_COOKIE_SAMESITE = "Lax"

    STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")
    LOCAL_STORAGE_DIR = os.getenv("LOCAL_STORAGE_DIR", "./storage")
    S3_ENDPOINT = os.getenv("S3_ENDPOINT")
    S3_BUCKET = os.getenv("AWS_S3_BUCKET")
    S3_REGION = os.getenv("AWS_REGION")
    S3_ACCESS_KEY = os.getenv("AWS_ACCESS_KEY_ID")
    S3_SECRET_KEY = os.getenv("AWS_SECRET_ACCESS_KEY")
    SIGNED_URL_EXPIRES = int(os.getenv("SIGNED_URL_EXPIRES", "3600"))
    # used to build links to locally stored objects (STORAGE_BACKEND=local)
    PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5000")

    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_MAX_ATTEMPTS = int(os.getenv("OPENAI_MAX_ATTEMPTS", "3"))

    ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY", "")

    WHATSAPP_ACCESS_TOKEN = os.getenv("WHATSAPP_ACCESS_TOKEN")
    WHATSAPP_PHONE_NUMBER_ID = os.getenv("WHATSAPP_PHONE_NUMBER_ID")
    WHATSAPP_VERIFY_TOKEN = os.getenv("WHATSAPP_VERIFY_TOKEN")
    WHATSAPP_API_VERSION = os.getenv("WHATSAPP_API_VERSION", "v18.0")

    SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY")
    MAIL_FROM = os.getenv("MAIL_FROM", "noreply@foundarv.com")
    MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "Foundarv Vault")
    PASSWORD_RESET_MAX_AGE = int(os.getenv("PASSWORD_RESET_MAX_AGE", "3600"))
