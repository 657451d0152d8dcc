"""
Filing feature: raw SQL, query gateway and HTTP endpoints.
"""
