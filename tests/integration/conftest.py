"""Shared fixtures for integration tests

Integration tests use REAL external services:
- Gemini (Vertex AI or API key) for answer generation

NO MOCKS - these tests verify actual integration with the model.

IMPORTANT: Integration tests FAIL LOUDLY if not configured.
They should NOT be silently skipped - if they fail, something is broken!

To run integration tests:
    export GCP_PROJECT_ID=your-project-id      # or GEMINI_API_KEY
    gcloud auth application-default login
    pytest tests/integration/

To skip integration tests explicitly:
    pytest tests/unit/                    # Only unit tests
    pytest -m 'not integration'           # Skip integration marker
"""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env.local for integration tests (same as main.py does)
env_local = Path(__file__).parent.parent.parent / ".env.local"
if env_local.exists():
    load_dotenv(env_local, override=True)

from src.generation import create_genai_client


@pytest.fixture(scope="session")
def genai_client():
    """
    Create real Google Gen AI client for integration tests.

    Shared across all integration tests in the session.
    FAILS LOUDLY if not configured.
    """
    if not os.getenv("GEMINI_API_KEY") and not os.getenv("GCP_PROJECT_ID"):
        pytest.fail(
            "\n\n"
            "GEMINI_API_KEY / GCP_PROJECT_ID not set! Integration tests require a real Gemini connection.\n"
            "\n"
            "Options:\n"
            "1. export GEMINI_API_KEY=...  (Gemini API)\n"
            "2. export GCP_PROJECT_ID=your-project-id && gcloud auth application-default login  (Vertex AI)\n"
            "3. Skip integration tests explicitly:\n"
            "   pytest tests/unit/\n"
            "   pytest -m 'not integration'\n"
        )

    client = create_genai_client()
    print("\n✓ Created real GenAI client")
    return client
