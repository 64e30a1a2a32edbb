import logging
from tvspotter.main import app

# Setup basic logging so reminder failures show up in the function logs
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

logger.info("TVspotter api/index.py initialized")

# Entry point for serverless deployments; exports the FastAPI app instance
__all__ = ["app"]
