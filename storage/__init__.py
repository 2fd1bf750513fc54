"""storage/ -- Key-value persistence for the orgauth backend.

Layer rule: storage/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or backend/.
"""
