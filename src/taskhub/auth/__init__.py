"""Authentication.

Learn: Users sign in through the main web application, which issues
JWT access tokens. This service accepts the same tokens:
1. HTTP → Authorization: Bearer <token>
2. WebSocket → ?token=<token> on the socket URL

Both resolve to a CurrentIdentity (user id + company id).
"""
