"""Shared library for the newsletter AI functions.

This code is packaged as a Lambda Layer (Python) and imported by multiple functions.

Design goals:
- Keep dependencies minimal (boto3 + jsonschema).
- The model only changes state through a declared, validated tool call.
- Every persisted record is scoped by tenant in code, not in prompts.
"""
