import logging
import os

# JWT Config
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_MINUTES = int(os.getenv("JWT_EXPIRE_MINUTES", 60 * 24))  # 24 hours

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

# Storage: MongoDB when DATABASE_URL is set, JSON files otherwise
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "miniteen_shop")
DATA_DIR = os.getenv("DATA_DIR", os.path.join(os.getcwd(), "data"))

PUBLIC_DIR = os.getenv("PUBLIC_DIR", os.path.join(os.getcwd(), "public"))

FRONTEND_URL = os.getenv("FRONTEND_URL", "*")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8000))


def cors_origins():
    return [origin.strip() for origin in FRONTEND_URL.split(",") if origin.strip()]


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
