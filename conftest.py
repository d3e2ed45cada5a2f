"""Global pytest configuration."""

import os

# Settings are read at import time, so the test environment goes in first
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("QDRANT_URL", "http://localhost:6333")
os.environ.setdefault("CLERK_ISSUER", "https://clerk.test")
