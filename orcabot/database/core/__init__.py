"""
Service layer joining the API router with the DAOs (see `funcs`).
"""
