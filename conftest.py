"""
Pytest configuration.
Environment is set before anything imports the app so settings pick up the
in-memory SQLite database and skip the default admin seed.
"""
import os

# Set testing environment before importing app
os.environ["TESTING"] = "True"
os.environ["DEBUG"] = "False"
os.environ.setdefault("JWT_SECRET", "test-secret")
