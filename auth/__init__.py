"""auth/ -- Authentication and credential storage for the account service.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and kv/.
It does NOT import from api/ or users/.
api/ and users/ import from auth/, not the other way around.
"""
