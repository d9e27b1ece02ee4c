"""kv/ -- Embedded key-value storage engine.

Layer rule: kv/ imports only stdlib + SQLAlchemy. It knows nothing about
users or tokens; auth/store.py builds the credential store on top of it.
"""
