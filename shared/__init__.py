"""
Shared utilities for the access control engine.

This package aggregates cross-cutting building blocks:

- config: Global settings via pydantic-settings, per-resource-type overrides
- logging: Structured logging with correlation context
- metrics: Prometheus metrics for access decisions
- errors: Canonical error types and responses
- test_helpers: Factories for test data
"""
