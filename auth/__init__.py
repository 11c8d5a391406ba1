"""auth/ -- Authentication and authorization core for RxAuth.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/. api/ imports from auth/, not the other
way around. auth/dependencies.py is the one module allowed to import FastAPI.
"""
