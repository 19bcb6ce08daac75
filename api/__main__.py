"""Command line interface for running the API server."""
import argparse
import logging
import uvicorn

from config import settings_conf, is_production

# Configure logging
logging.basicConfig(
    level=settings_conf.get('log_level', 'INFO'),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def main():
    """Run the API server."""
    parser = argparse.ArgumentParser(description="Run the marketplace API")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    args = parser.parse_args()

    logger.info(f"Starting API on {args.host}:{args.port} ({settings_conf['environment']})")
    uvicorn.run(
        "api:app",
        host=args.host,
        port=args.port,
        reload=args.reload and not is_production(),
        log_level=settings_conf['log_level'].lower()
    )

if __name__ == "__main__":
    main()
