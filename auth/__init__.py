"""auth/ -- Authentication and authorization core for Exploree Accounts.

Credential hashing, token signing, token transport, service-key trust and
the FastAPI dependencies that turn them into 401/403 decisions.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/, accounts/, or waitlist/.
api/ imports from auth/, not the other way around.
"""
