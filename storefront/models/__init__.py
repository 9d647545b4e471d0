"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all runs
  2. Other modules can import from storefront.models directly
"""

from storefront.models.user import Role, User  # noqa: F401
