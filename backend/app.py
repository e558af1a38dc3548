import functools
import os
import signal
import sys
import threading

sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from common.arguments import parse_arguments  # noqa: E402
from common.configuration import Configuration  # noqa: E402
from common.logger import get_logger  # noqa: E402
from crud.observations import ResultStore  # noqa: E402
from db import create_db_engine, create_session_factory, init_db  # noqa: E402
from decoders.adapter import SamplePipelineAdapter  # noqa: E402
from decoders.registry import decoder_registry  # noqa: E402
from observations.orchestrator import ObservationOrchestrator  # noqa: E402
from observations.scheduler import ObservationScheduler  # noqa: E402
from satconfig.catalog import load_catalog  # noqa: E402
from server import shutdown  # noqa: E402
from server.scheduler import create_scheduler, start_scheduler  # noqa: E402
from server.shutdown import cleanup_everything, signal_handler  # noqa: E402
from tasks.registry import build_background_tasks  # noqa: E402
from tasks.resilient import ResilientTask  # noqa: E402
from tracking.passes import SkyfieldPassPredictor  # noqa: E402


def print_banner():
    """Print ASCII art banner."""
    print(
        """
   ██████╗ ██████╗  ██████╗ ██╗   ██╗███╗   ██╗██████╗
  ██╔════╝ ██╔══██╗██╔═══██╗██║   ██║████╗  ██║██╔══██╗
  ██║  ███╗██████╔╝██║   ██║██║   ██║██╔██╗ ██║██║  ██║
  ██║   ██║██╔══██╗██║   ██║██║   ██║██║╚██╗██║██║  ██║
  ╚██████╔╝██║  ██║╚██████╔╝╚██████╔╝██║ ╚████║██████╔╝
   ╚═════╝ ╚═╝  ╚═╝ ╚═════╝  ╚═════╝ ╚═╝  ╚═══╝╚═════╝

                  unattended observer
    """
    )


def build_adapter(config: Configuration) -> SamplePipelineAdapter:
    base_params = {}
    satdump_path = config.get_property("satellites.satdump.path")
    if satdump_path:
        base_params["satdump_path"] = satdump_path
    return SamplePipelineAdapter(decoder_registry, base_params)


def main() -> None:
    arguments = parse_arguments()
    logger = get_logger(arguments)
    print_banner()

    threading.current_thread().name = "Ground Station - Main Thread"

    config = Configuration(arguments.config)

    logger.info("Configuring database connection...")
    engine = create_db_engine(arguments.db)
    init_db(engine)
    store = ResultStore(create_session_factory(engine), arguments.data_dir)

    satellites = load_catalog(arguments.catalog, decoder_registry)
    predictor = SkyfieldPassPredictor(
        min_elevation=config.get_float("satellites.min.elevation", 8.0)
    )
    adapter = build_adapter(config)
    orchestrator_factory = functools.partial(
        ObservationOrchestrator, config, store=store, adapter=adapter
    )

    scheduler = create_scheduler()
    observation_scheduler = ObservationScheduler(
        scheduler,
        config,
        satellites,
        predictor,
        orchestrator_factory,
    )
    shutdown.observation_scheduler = observation_scheduler

    periodic_tasks = [
        (ResilientTask("observation-planner", observation_scheduler), arguments.plan_interval, True)
    ]
    for task in build_background_tasks(config):
        periodic_tasks.append((task, arguments.ddns_interval, True))

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(f"Starting Ground Station observer with parameters {arguments}")
    try:
        start_scheduler(periodic_tasks, target=scheduler)
        threading.Event().wait()
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt in main")
        cleanup_everything()
        os._exit(0)
    except Exception as e:  # pragma: no cover - startup errors
        logger.error(f"Error starting Ground Station observer: {str(e)}")
        logger.exception(e)
        cleanup_everything()
        os._exit(1)


if __name__ == "__main__":
    main()
