"""
Test Suite

Structure:
    tests/
    ├── conftest.py              # Pytest fixtures (in-memory MongoDB, directory, workflows)
    ├── test_graph.py            # Workflow graph validation and traversal
    ├── test_credit_ledger.py    # Primary/secondary credit rules
    ├── test_actions.py          # Action payload parsing
    ├── test_engine.py           # Action processor end to end
    ├── test_attachments.py      # Attachment storage
    ├── test_notifications.py    # Outbox and scheduler
    └── test_api.py              # HTTP endpoints

To run tests:
    pytest tests/
"""
