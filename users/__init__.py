"""users/ -- Registration and profile management.

Layer rule: users/ may import from auth/ and core/, never from api/.
"""
