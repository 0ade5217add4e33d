import asyncio
import logging

from xvb_scheduler.config.config import NODE_PING_ATTEMPTS, TIMEOUT_NODE_PING_MS, XVB_NODE_RPC
from xvb_scheduler.helper.modes import ProcessState
from xvb_scheduler.helper.nodes import XvbNode

logger = logging.getLogger("NodeService")


class NodeSelector:
    """
    Picks the fastest reachable XvB node.

    Both nodes are probed at the same time; inside one probe the attempts run
    one after the other and the best round trip wins.
    """
    def __init__(self, state, xvb_client, attempts=NODE_PING_ATTEMPTS,
                 timeout_ms=TIMEOUT_NODE_PING_MS, rpc_port=XVB_NODE_RPC):
        self.state = state
        self.xvb_client = xvb_client
        self.attempts = attempts
        self.timeout_ms = timeout_ms
        self.rpc_port = rpc_port

    async def probe(self, node):
        """Minimum round trip in ms over all attempts, timeout_ms if none succeeded."""
        best = self.timeout_ms
        for _ in range(self.attempts):
            ms = await self.xvb_client.ping(node.url, self.rpc_port, self.timeout_ms)
            best = min(best, ms)
        logger.debug(f"Probe | {node}: {best} ms")
        return best

    def choose(self, scores):
        """
        Decision over {node: ms}. Returns (node, all_offline).

        A score equal to the timeout means the node is unreachable.
        """
        reachable = {node: ms for node, ms in scores.items() if ms < self.timeout_ms}
        if not reachable:
            return XvbNode.P2POOL, True
        # Ties keep the order of donation_nodes(), Europe first
        order = XvbNode.donation_nodes()
        node = min(reachable, key=lambda n: (reachable[n], order.index(n) if n in order else len(order)))
        return node, False

    async def select_fastest(self, candidates=None):
        nodes = list(candidates) if candidates else XvbNode.donation_nodes()
        logger.info(f"Probing {', '.join(str(n) for n in nodes)}")

        results = await asyncio.gather(*(self.probe(node) for node in nodes))
        scores = dict(zip(nodes, results))
        node, all_offline = self.choose(scores)

        if all_offline:
            logger.warning("No XvB node answered, falling back to the local P2pool")
            self.state.set_process_state(ProcessState.OFFLINE_NODES_ALL)
            self.state.console("XvB nodes are offline, the local P2pool will be used until they come back.")
        else:
            # A pending stats retry keeps its own state until the poller recovers
            self.state.transition_if(
                tuple(s for s in ProcessState if s not in (ProcessState.SYNCING, ProcessState.RETRY)),
                ProcessState.SYNCING,
            )
            detail = ", ".join(f"{n}: {scores[n]} ms" for n in nodes)
            self.state.console(f"Selected {node} ({detail})")
            logger.info(f"Selected {node} ({detail})")

        self.state.set_selected_node(node)
        return node, all_offline
