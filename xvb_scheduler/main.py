import asyncio
import contextlib
import logging

from aiohttp import web, ClientSession

from xvb_scheduler.config.config import (
    MONERO_WALLET_ADDRESS,
    XVB_TOKEN,
    XMRIG_API_URL,
    XMRIG_PROXY_API_URL,
    XMRIG_API_TOKEN,
    XMRIG_RIG_ID,
    XMRIG_PROXY_MODE,
    WEB_PORT,
)
from xvb_scheduler.client.xmrig_client import XMRigApiClient
from xvb_scheduler.client.xvb_client import XvbClient
from xvb_scheduler.service.algo_service import DonationScheduler
from xvb_scheduler.service.data_service import DataService
from xvb_scheduler.service.node_service import NodeSelector
from xvb_scheduler.service.state_service import RuntimeConfig, XvbState
from xvb_scheduler.service.stats_service import StatsPoller
from xvb_scheduler.web.server import create_app

# --- Setup Logging ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] %(message)s')
logger = logging.getLogger("Main")


async def start_background_tasks(app):
    """Launches all background loops when Web Server starts"""
    state = app['state']

    if XMRIG_PROXY_MODE:
        xmrig_client = XMRigApiClient(XMRIG_PROXY_API_URL, XMRIG_API_TOKEN, proxy=True)
    else:
        xmrig_client = XMRigApiClient(XMRIG_API_URL, XMRIG_API_TOKEN)

    session = ClientSession()
    xvb_client = XvbClient(session)

    data_service = DataService(state, xmrig_client, proxy_mode=XMRIG_PROXY_MODE)
    stats_poller = StatsPoller(state, xvb_client, MONERO_WALLET_ADDRESS, XVB_TOKEN)
    selector = NodeSelector(state, xvb_client)
    scheduler = DonationScheduler(state, xmrig_client, selector,
                                  address=MONERO_WALLET_ADDRESS, rig_id=XMRIG_RIG_ID)

    app['http_session'] = session
    app['scheduler'] = scheduler
    app['data_task'] = asyncio.create_task(data_service.run())
    app['stats_task'] = asyncio.create_task(stats_poller.run())
    app['algo_task'] = asyncio.create_task(scheduler.run())


async def stop_background_tasks(app):
    """Stops the scheduler first so it can hand the miner back to p2pool."""
    app['scheduler'].stop()
    with contextlib.suppress(asyncio.CancelledError):
        await app['algo_task']

    for key in ('data_task', 'stats_task'):
        app[key].cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await app[key]

    await app['http_session'].close()


def main():
    if not MONERO_WALLET_ADDRESS:
        logger.warning("MONERO_WALLET_ADDRESS is not set, XvB will not be able to credit donations")

    state = XvbState(runtime=RuntimeConfig.from_config())

    # Create Web App
    app = create_app(state)

    # Attach background tasks
    app.on_startup.append(start_background_tasks)
    app.on_cleanup.append(stop_background_tasks)

    logger.info(f"Starting XvB Scheduler on port {WEB_PORT}")

    # Run
    web.run_app(app, port=WEB_PORT, print=None)


if __name__ == "__main__":
    main()
