"""schemasync test suite.

Unit tests live in tests/unit/, one module per library module:
- test_coercion.py: typed reads and the number fallback
- test_checks.py: every validator's check_cell and message rendering
- test_inspector.py: compile/execute passes and report shape
- test_synchronizer.py / test_editing.py: schema deltas after column edits
"""
