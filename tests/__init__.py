"""Test package for the invoice workflow application.

Test Structure:
- conftest.py: Shared fixtures and test configuration
- helpers.py: Fake collaborators and vector helpers
- test_template_matcher.py / test_template_repository.py: Template matching
- test_state_machine.py: Compiler workbench lifecycle
- test_auto_processor.py: Unattended processing pipeline
- test_job_repository.py: Job persistence and status rules

Usage:
    Run all tests: pytest
    Run specific module: pytest tests/test_state_machine.py
    Run with coverage: pytest --cov=src/invoice_workflow
"""

__version__ = "1.0.0"
