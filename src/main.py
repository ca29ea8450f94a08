"""
AP Measurement Client - Main Entry Point
"""

import asyncio
import signal
import sys
import logging
import os

from services.ap_client import ApClientService

logger = logging.getLogger(__name__)

async def main():
    """Main entry point"""

    client = None
    loop = asyncio.get_running_loop()

    def request_shutdown(signum):
        logger.info(f"Received signal {signum}, shutting down...")
        if client:
            asyncio.create_task(client.stop())

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, request_shutdown, signum)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    try:
        # Get config file path from environment variable or use default
        config_path = os.environ.get('CONFIG_FILE', 'config/config.yaml')
        logger.info(f"Using configuration file: {config_path}")
        client = ApClientService(config_path=config_path)

        await client.start()

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Client failed: {e}")
        return 1
    finally:
        if client:
            await client.stop()

    return 0

def run():
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nClient stopped by user")
        sys.exit(0)

if __name__ == "__main__":
    run()
