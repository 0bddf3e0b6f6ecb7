import asyncio
import logging
import sys

from pydantic import ValidationError

from .api_gateway.service import APIGatewayService, create_app
from .config import Settings
from .logger import setup_logging
from .registry.service import RegistryStoreService
from .service_manager.service_manager import ServiceManager
from .utils import print_banner

logger = logging.getLogger("node-registry")


async def main(settings: Settings):
    """
    Main entry point for the Node Registry.
    Provisions the store, then serves the HTTP API until the server exits.
    """
    print_banner("Node Registry")
    logger.info("Starting Node Registry...")

    service_manager = ServiceManager()

    # Store first: the gateway cannot serve anything without it
    store_svc = RegistryStoreService(settings)
    gateway_svc = APIGatewayService(settings, create_app(store_svc.registry))

    service_manager.register(store_svc)
    service_manager.register(gateway_svc)

    await service_manager.start_all()

    try:
        await gateway_svc.task
    except asyncio.CancelledError:
        logger.info("Node Registry shutting down...")
    finally:
        await service_manager.stop_all()


def run():
    try:
        settings = Settings()
    except ValidationError as e:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        logger.critical(f"Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(settings)
    try:
        asyncio.run(main(settings))
    except KeyboardInterrupt:
        logger.info("Node Registry stopped by user.")
    except Exception as e:
        logger.critical(f"Node Registry failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
