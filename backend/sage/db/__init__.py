"""Database Infrastructure — SQLAlchemy Base and async session factory."""
