"""Region models and repository abstractions.

This package holds the Region data model and the repositories that persist
it. Use get_region_repository(settings) for the PostGIS-backed store in
production and InMemoryRegionRepository in tests.

Example:
    Use in a service or FastAPI dependency:
        >>> from regionmap.db import database
        >>> repo = database.get_region_repository(settings)
"""
