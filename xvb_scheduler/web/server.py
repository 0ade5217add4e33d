import logging
import math

from aiohttp import web

from xvb_scheduler.helper.modes import RuntimeDonationLevel, RuntimeMode
from xvb_scheduler.service.state_service import RuntimeConfig

logger = logging.getLogger("WebServer")


async def handle_status(request):
    state = request.app['state']
    return web.json_response(state.snapshot())


async def handle_console(request):
    state = request.app['state']
    lines = state.get_console()
    try:
        tail = int(request.query.get('tail', 0))
    except ValueError:
        raise web.HTTPBadRequest(text="tail must be an integer")
    if tail > 0:
        lines = lines[-tail:]
    return web.json_response({"lines": lines})


def _runtime_from_payload(current, payload):
    """Merges the posted fields into the current runtime configuration."""
    if not isinstance(payload, dict):
        raise ValueError("payload must be a JSON object")

    mode = current.mode
    amount = current.amount
    level = current.donation_level

    if "mode" in payload:
        mode = RuntimeMode.parse(payload["mode"])
    if "amount" in payload:
        try:
            amount = float(payload["amount"])
        except (TypeError, ValueError):
            raise ValueError(f"amount must be a number, got {payload['amount']!r}")
        if not math.isfinite(amount) or amount < 0:
            raise ValueError("amount must be a finite non-negative number")
    if "donation_level" in payload:
        level = RuntimeDonationLevel.parse(payload["donation_level"])

    return RuntimeConfig(mode=mode, amount=amount, donation_level=level)


async def handle_runtime(request):
    state = request.app['state']
    try:
        payload = await request.json()
    except ValueError:
        raise web.HTTPBadRequest(text="body must be JSON")

    try:
        runtime = _runtime_from_payload(state.get_runtime(), payload)
    except ValueError as e:
        return web.json_response({"error": str(e)}, status=400)

    state.set_runtime(runtime)
    state.console(f"Runtime configuration changed: mode {runtime.mode}, amount {runtime.amount:g} H/s, "
                  f"level {runtime.donation_level}")
    logger.info(f"Runtime configuration changed: {runtime.to_dict()}")
    return web.json_response(runtime.to_dict())


def create_app(state):
    """Factory to create the web app instance."""
    app = web.Application()
    # Pass shared state objects to the app context
    app['state'] = state

    app.add_routes([
        web.get('/api/status', handle_status),
        web.get('/api/console', handle_console),
        web.post('/api/runtime', handle_runtime),
    ])
    return app
