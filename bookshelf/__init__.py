"""
Bookshelf Application Package

Book browsing and review service: ranked book listings, book pages with
reviews, and rate-limited review submission.

Package Structure:
- config.py: Application configuration using Pydantic Settings
- database.py: SQLAlchemy database connection and session management
- exceptions.py: Domain error kinds shared by services and routers
- main.py: FastAPI application factory and configuration
- dependencies.py: Dependency injection functions
- models/: SQLAlchemy ORM models
- schemas/: Pydantic request/response schemas
- repositories/: Book and review data access
- services/: Ranking, caching, submission guard, catalog orchestration
- routers/: API route handlers
"""

__version__ = "0.1.0"
