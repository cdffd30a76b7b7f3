"""Global pytest configuration."""

import os

# Set environment for tests before any imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MODEL_API_KEY", "")
