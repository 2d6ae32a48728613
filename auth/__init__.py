"""
auth — authentication and authorization core.

Provides:
  • Compact signed tokens (HMAC-SHA256) in ``auth.tokens``
  • Password hashing (bcrypt, legacy SHA-256 digests upgraded on login)
  • Credential verification and session issuance
  • Bearer-token request authentication with a revocation list
  • The role/ownership access policy gate
  • Login / register / logout / verify / refresh API routes
"""
