"""
SQLAlchemy engine, sessions and the SQL schema.
"""
