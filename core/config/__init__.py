#!/usr/bin/env python3
"""Modular configuration system for the campaign planner

Configuration hierarchy:
- infra_config: Infrastructure services (PostgreSQL, NATS)
- service_config: Timeline service settings (port, cascade defaults)
- logging_config: Logging configuration
- planner_config: Root config combining the above
"""
import os
from dotenv import load_dotenv
from .logging_config import LoggingConfig, JsonFormatter, setup_logging
from .infra_config import InfraConfig
from .service_config import ServiceConfig
from .planner_config import PlannerConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)

# Create global settings instance
settings = PlannerConfig.from_env()

def get_settings() -> PlannerConfig:
    """Get global settings instance"""
    return settings

__all__ = [
    # Main config
    'PlannerConfig',
    'get_settings',
    'settings',
    # Sub-configs
    'LoggingConfig',
    'InfraConfig',
    'ServiceConfig',
    # Logging helpers
    'JsonFormatter',
    'setup_logging',
]
