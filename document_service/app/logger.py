import logging
import sys
from pathlib import Path

from . import config

handlers = [logging.StreamHandler(sys.stdout)]

# Optional file handler
if config.LOG_FILE:
    log_path = Path(config.LOG_FILE)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handlers.append(logging.FileHandler(log_path))

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=handlers
)

# Function to get logger for specific modules
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
