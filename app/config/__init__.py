"""
Configuration module for the call relay.

Key components:
- constants: Protocol event names, default model settings and close codes shared
  across modules.
- settings: Immutable settings read once from the environment and a local .env file.
- logging_config: Console and rotating file logging for the application logger.

Usage examples:
```python
from app.config.settings import load_settings
from app.config.logging_config import configure_logging

settings = load_settings()
logger = configure_logging(settings.log_level)
logger.info("Application started")
```
"""
