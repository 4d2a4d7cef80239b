#!/usr/bin/env python3
"""
Core Module for the Campaign Planner Services

Shared infrastructure used by the planner microservices.

COMPONENTS:
    - config/: Dataclass configuration loaded from environment (.env via python-dotenv)
    - postgres_client.py: asyncpg pool wrapper with LISTEN/NOTIFY support
    - nats_client.py: NATS event bus for event-driven architecture

USAGE:
    from core.config import get_settings, setup_logging

    settings = get_settings()
    setup_logging(settings.logging)
"""

__version__ = "1.0.0"
