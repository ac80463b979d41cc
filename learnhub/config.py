"""
Learnhub Configuration
Store, identity and grading settings
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "learnhub_db")

# "mongo" for the managed database, "memory" for local runs without one
STORE_BACKEND = os.getenv("STORE_BACKEND", "mongo").lower()

# Identity (shared secret with the auth provider)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Grading
PASSING_THRESHOLD = int(os.getenv("PASSING_THRESHOLD", "60"))
COMMIT_MAX_RETRIES = int(os.getenv("COMMIT_MAX_RETRIES", "10"))

# Service
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
