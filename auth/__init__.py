"""auth/ -- Authentication package for the IT portal.

Credential hashing, the account and session stores, the session manager, and
the local and OpenID Connect login strategies.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, catalog/, or sharing/.
api/ and sharing/ import from auth/, not the other way around.
"""
