"""
Connection bootstrap and process wiring shared by the HTTP layer.

Everything here is independent of the filings table: the asyncpg pool and its
retrying bootstrap, env settings, log setup and the FastAPI pool dependency.
"""
