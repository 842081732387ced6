"""
Persistence package for the Symptoms Service (PostgreSQL via asyncpg).
"""
