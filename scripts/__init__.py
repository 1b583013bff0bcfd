"""
Backend Scripts Module

Utility scripts for database setup and maintenance.

Available scripts:
    - seed_data.py: Creates a sample directory and functionality
    - validate_workflow.py: Checks a stored workflow graph

Usage:
    python -m scripts.seed_data
    python -m scripts.validate_workflow FN-...
"""
