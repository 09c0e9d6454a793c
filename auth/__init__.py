"""auth/ -- Credential authentication and session issuance for CareAuth.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
The one exception is auth/dependencies.py, which plugs into FastAPI's
dependency injection. api/ imports from auth/, not the other way around.
"""
