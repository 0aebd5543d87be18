"""
Feature modules live under this package.

Each module owns its models, service functions and views (blueprint), and reuses
the platform primitives: auth context, role permissions, DB session.
"""
