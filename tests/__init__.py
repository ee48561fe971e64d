"""
Test suite for the Telehealth Booking Service.

Contains unit tests for the booking core and integration tests for the HTTP API.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///./test.db")
