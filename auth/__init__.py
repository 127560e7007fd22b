"""
auth — User authentication module.

Provides:
  • JWT token creation & verification
  • Password hashing (bcrypt, work factor 12)
  • Register / Login / Me API routes
  • ``get_current_user`` and ``require_roles`` FastAPI dependencies
"""
