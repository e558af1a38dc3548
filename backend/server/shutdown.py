import logging
import os

from server.scheduler import stop_scheduler

logger = logging.getLogger("ground-station")

# Set by app.main once the observation scheduler is built
observation_scheduler = None


def cleanup_everything():
    """Cancel pending observations and stop the scheduler."""
    logger.info("Cleaning up observations and background tasks...")

    try:
        if observation_scheduler is not None:
            observation_scheduler.cancel_all()
    except Exception as e:  # pragma: no cover - best effort cleanup
        logger.warning(f"Error cancelling observations: {e}")

    try:
        stop_scheduler()
    except Exception as e:  # pragma: no cover - best effort cleanup
        logger.warning(f"Error stopping scheduler: {e}")

    logger.info("Cleanup complete")


def signal_handler(signum, frame):
    """Handle SIGINT and SIGTERM signals."""
    logger.info(f"Received signal {signum}, initiating shutdown...")
    cleanup_everything()
    logger.info("Forcing exit...")
    os._exit(0)
