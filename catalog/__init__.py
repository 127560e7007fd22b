"""
catalog — games, categories and listings.

Provides:
  • Public browse routes (games, categories, paginated listings)
  • Admin routes for games and categories (ADMIN / MODERATOR)
  • Owner-only listing create / update / delete
  • The shared query core in ``catalog.queries``
"""
