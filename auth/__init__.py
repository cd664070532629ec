"""auth/ -- Accounts, sessions, login throttling and roles for the forum.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and cache/.
It does NOT import from api/ or board/.
board/ and api/ import from auth/, not the other way around.
"""
