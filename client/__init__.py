"""
Async client for the marketplace API with session, cache and routing state.
"""
