"""
eCFR Metrics Test Suite
=======================

Test organization:
- tests/unit/                  - Settings, models, logging and CLI
- tests/services/ecfr_metrics/ - Pipeline components and end-to-end runs
                                 (mocked publisher, in-memory store)

Run tests:
    pytest                          # All tests
    pytest tests/unit               # Unit tests only
    pytest tests/services           # Pipeline tests only
"""
