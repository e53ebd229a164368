"""
Core Domain Layer - the hexagon.

This package holds the pure ticket lifecycle logic, with no framework
dependencies:
- No Django, Celery or dependency-injector imports
- Testable without any infrastructure
- Infrastructure-agnostic
"""
