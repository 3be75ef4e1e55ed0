import logging
import sys

__version__ = "1.0.0"
__description__ = "Corridor-based quadrotor trajectory planning with look-ahead safety supervision"

if not logging.getLogger().handlers:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

logger = logging.getLogger(__name__)
logger.debug(f"corridor-planner v{__version__} package loaded")

__all__ = ['__version__', '__description__']
