"""
Tally Test Suite

Test Structure:
    tests/
    ├── conftest.py               # Shared fixtures and configuration
    ├── unit/                     # Unit tests (isolated, no external dependencies)
    │   ├── test_calendar.py      # Day keys, weeks, month arithmetic
    │   ├── test_ledger.py        # Progress ledger and unit of work
    │   ├── test_quota.py         # Daily quota strategies
    │   ├── test_streaks.py       # Streak calculation
    │   ├── test_weekly.py        # Weekly attainment
    │   ├── test_heatmap.py       # Heatmap aggregation
    │   └── test_tracker.py       # Tracker service (in-memory repository)
    └── integration/              # Integration tests (in-memory SQLite)
        ├── test_repository.py    # SqlStudyRepository
        └── test_study_api.py     # HTTP endpoints

Running Tests:
    # Run all tests
    pytest backend/tests/ -v

    # Run only unit tests
    pytest backend/tests/unit/ -v

    # Run only integration tests
    pytest -m integration -v
"""
