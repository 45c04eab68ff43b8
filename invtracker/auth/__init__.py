"""
Authentication core: Steam OpenID login and cookie sessions.

Design goals:
- Never trust a callback assertion without provider re-validation.
- Stateless server: the signed HttpOnly cookie is the session.
- Logout clears every cookie scope, regardless of backend availability.
"""
