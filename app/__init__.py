"""
SteamLog application package.

Layered architecture:

  app/repositories/  - pure I/O: loading from and persisting to JSON files.
  app/services/      - business logic: validation, hashing, encryption,
                       library merging and chart aggregation.

``steamlog_web.create_app`` is the integration point: it builds repository
and service instances once per Flask app and route handlers call the
services, keeping the HTTP layer separate from the domain.
"""
