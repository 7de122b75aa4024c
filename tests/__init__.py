"""Test suite for the formstate form-state engine.

This package contains tests for:
- Path addressing, field registry and rule evaluation
- Error tree, dirty/touched tracking and watchers
- Field arrays with stable row identity
- Form-state projection and configuration
- Integration scenarios (validation modes, staleness, submission, reset)
"""
