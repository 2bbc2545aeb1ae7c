"""
Course Progression Service Configuration
Database, auth and grading settings
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "lms_db")

# Auth (shared secret with the identity provider)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")  # no default: unset means every token is rejected
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Client-bound request signing
CLIENT_SIGNATURE_REQUIRED = os.getenv("CLIENT_SIGNATURE_REQUIRED", "1").lower() not in ("0", "false", "no")
CLIENT_TIMESTAMP_SKEW_SECONDS = int(os.getenv("CLIENT_TIMESTAMP_SKEW_SECONDS", "60"))

# Grading
DEFAULT_PASSING_SCORE = int(os.getenv("DEFAULT_PASSING_SCORE", "70"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
