"""
Test Suite

Structure:
    tests/
    ├── __init__.py         # This file
    ├── conftest.py         # Pytest fixtures
    ├── support.py          # Clock, recording notifier, template builders
    ├── unit/               # Engine, service, repository and utility tests
    └── integration/        # API endpoint tests (FastAPI TestClient)

To run tests:
    pytest tests/
    pytest tests/unit/
    pytest tests/integration/
"""
