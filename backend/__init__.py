"""backend/ -- The GitHub organization auth method's config lifecycle.

Layer rule: backend/ imports from core/ and storage/ only. It does NOT import
from api/; api/ drives the backend, not the other way around.
"""
