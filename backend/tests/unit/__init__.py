"""
Unit tests package.

Isolated tests for policies, schemas, services and controllers. Services
run against mocked repositories; controllers against patched service
factories.
"""
