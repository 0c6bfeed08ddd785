"""Domain use cases. Each function opens its own ``db_session()`` and returns plain dicts."""
