"""auth/ -- Authentication and authorization package for the car rental API.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or rental/.
api/ imports from auth/, not the other way around.
"""
