"""
Poll service for continuous node monitoring.
"""

import asyncio
import logging
import signal
from typing import List, Optional, Sequence

from ..core.config import AppConfig, build_registry, load_nodes_file
from ..core.exceptions import (
    MalformedReadingError,
    ReadQualityError,
    SinkError,
    TransportError,
)
from ..events.loki_client import LokiClient
from ..events.sinks import LoggingSink, LokiSink, Sink
from ..session.base import Session
from ..session.gateway import GatewaySession
from ..session.status import status_name
from .detector import ChangeDetector
from .models import MEASUREMENT_NAME, CycleReport, MonitoredNode, Observation, ReadOutcome
from .registry import Clock, NodeRegistry, utc_now

logger = logging.getLogger(__name__)


class PollService:
    """
    Service that polls every registered node on a fixed cadence.

    Each cycle:
    1. Reads all nodes in one batched request
    2. Runs change detection for every node, in registration order
    3. Hands accepted observations to the sink

    Cycles never overlap. A failed batched read skips the cycle; a bad
    result for one node skips only that node.
    """

    def __init__(
        self,
        session: Session,
        registry: NodeRegistry,
        sink: Sink,
        server_name: str = "Device",
        poll_interval: float = 10.0,
        read_timeout: float = 10.0,
        detector: Optional[ChangeDetector] = None,
        clock: Clock = utc_now,
    ):
        """
        Initialize poll service.

        Args:
            session: Session used for batched reads
            registry: Nodes to monitor
            sink: Receiver of accepted observations
            server_name: Server name used to tag observations
            poll_interval: Time between cycle starts (seconds)
            read_timeout: Timeout for one batched read (seconds)
            detector: Change detector (default: ChangeDetector())
            clock: Source of the cycle reference time
        """
        self.session = session
        self.registry = registry
        self.sink = sink
        self.server_name = server_name
        self.poll_interval = poll_interval
        self.read_timeout = read_timeout
        self.detector = detector or ChangeDetector()
        self.clock = clock
        self.running = False
        self.stats = {
            "cycles": 0,
            "skipped_cycles": 0,
            "accepted": 0,
            "suppressed": 0,
            "skipped_nodes": 0,
        }
        self._cycle_lock = asyncio.Lock()
        self._stop_requested = False
        self._stop_event: Optional[asyncio.Event] = None

    async def start(self) -> None:
        """
        Connect the session.

        Raises:
            SessionConnectionError: If the session cannot be established
        """
        await self.session.connect()

    async def run_once(self) -> CycleReport:
        """
        Run one poll cycle.

        Returns:
            Report of what happened to every node this cycle
        """
        async with self._cycle_lock:
            return await self._poll_cycle()

    async def _poll_cycle(self) -> CycleReport:
        nodes = self.registry.all()
        report = CycleReport(started_at=self.clock())
        self.stats["cycles"] += 1

        if not nodes:
            logger.debug("No nodes registered, nothing to poll")
            return report

        try:
            outcomes = await self._read([node.node_id for node in nodes])
        except TransportError as e:
            logger.error(f"Poll cycle skipped: {e}")
            report.transport_error = str(e)
            self.stats["skipped_cycles"] += 1
            return report

        now = self.clock()
        self._decide(nodes, outcomes, now, report)
        await self._hand_off(report.observations)

        self.stats["accepted"] += report.accepted
        self.stats["suppressed"] += report.suppressed
        self.stats["skipped_nodes"] += len(report.skipped)
        return report

    async def read_all(self) -> List[ReadOutcome]:
        """
        Read every registered node once, without change detection.

        Raises:
            TransportError: If the read fails, times out or returns the wrong
                number of results
        """
        return await self._read(self.registry.node_ids())

    async def _read(self, node_ids: List[str]) -> List[ReadOutcome]:
        try:
            outcomes = await asyncio.wait_for(
                self.session.read(node_ids), timeout=self.read_timeout
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Read of {len(node_ids)} node(s) timed out after {self.read_timeout}s"
            ) from e

        # Results are matched to nodes by position
        if len(outcomes) != len(node_ids):
            raise TransportError(
                f"Read returned {len(outcomes)} result(s) for {len(node_ids)} node(s)"
            )
        return list(outcomes)

    def _decide(
        self,
        nodes: Sequence[MonitoredNode],
        outcomes: Sequence[ReadOutcome],
        now,
        report: CycleReport,
    ) -> None:
        for node, outcome in zip(nodes, outcomes):
            try:
                if not outcome.is_good:
                    raise ReadQualityError(
                        node.node_id,
                        outcome.status,
                        f"Bad quality for {node.node_id}: {status_name(outcome.status)}",
                    )
                observation = self.detector.observe(node, outcome, now, self.server_name)
            except (ReadQualityError, MalformedReadingError) as e:
                logger.warning(f"Skipping {node.tag}: {e}")
                report.skipped.append((node.node_id, str(e)))
                continue

            if observation is None:
                report.suppressed += 1
            else:
                report.accepted += 1
                report.observations.append(observation)

    async def _hand_off(self, observations: List[Observation]) -> None:
        for observation in observations:
            try:
                await self.sink.record(
                    MEASUREMENT_NAME,
                    observation.to_tags(),
                    observation.to_fields(),
                    observation.timestamp,
                )
            except SinkError as e:
                logger.error(f"Failed to record {observation.tag}: {e}")

        try:
            await self.sink.flush()
        except SinkError as e:
            logger.error(f"Failed to flush sink: {e}")

    async def run(self, max_cycles: Optional[int] = None) -> None:
        """
        Run the poll loop until stop() is called.

        Shutdown is only honoured between cycles. A stop() issued before run()
        makes it return without polling.

        Args:
            max_cycles: Stop after this many cycles (default: run forever)
        """
        self._stop_event = asyncio.Event()
        if self._stop_requested:
            self._stop_event.set()
        self.running = not self._stop_requested
        loop = asyncio.get_running_loop()
        logger.info(
            f"Starting poll service for {self.server_name} "
            f"({len(self.registry)} nodes, interval: {self.poll_interval}s)"
        )

        iteration = 0
        while self.running:
            iteration += 1
            cycle_start = loop.time()
            logger.debug(f"Poll iteration {iteration}")

            try:
                report = await self.run_once()
                logger.info(f"Cycle {iteration}: {report.summary()}")
            except Exception as e:
                logger.error(f"Error in poll cycle: {e}", exc_info=True)

            if max_cycles is not None and iteration >= max_cycles:
                break

            # Fixed cadence from cycle start; an overrunning cycle is followed immediately
            delay = max(0.0, self.poll_interval - (loop.time() - cycle_start))
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

        self.running = False
        self._stop_requested = False
        logger.info(f"Poll service stopped after {iteration} cycle(s): {self.stats}")

    def stop(self) -> None:
        """Stop the poll loop after the current cycle."""
        logger.info("Stopping poll service")
        self._stop_requested = True
        self.running = False
        if self._stop_event is not None:
            self._stop_event.set()

    def install_signal_handlers(self) -> None:
        """Stop between cycles on SIGINT/SIGTERM instead of being cancelled mid-cycle."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError):
                logger.debug(f"Signal handler for {sig.name} not supported on this platform")

    async def close(self) -> None:
        """Close the sink and the session."""
        try:
            await self.sink.close()
        except SinkError as e:
            logger.error(f"Failed to flush sink on close: {e}")
        finally:
            await self.session.close()


def build_service(
    config: AppConfig,
    nodes_file: Optional[str] = None,
    dry_run: bool = False,
) -> PollService:
    """
    Build a poll service from configuration.

    Args:
        config: Application configuration
        nodes_file: YAML nodes file (default: config.poll.nodes_file)
        dry_run: Log observations instead of pushing them to Loki

    Raises:
        ConfigurationError: If the nodes file is invalid
    """
    nodes = load_nodes_file(nodes_file or config.poll.nodes_file)
    server_name = nodes.server_name or config.server.server_name
    endpoint_url = nodes.url or config.server.url

    registry = build_registry(nodes.nodes)

    session = GatewaySession(
        endpoint_url=endpoint_url,
        gateway_url=config.server.gateway_url,
        timeout=config.server.read_timeout,
        max_age_ms=config.server.max_age_ms,
        security_mode=config.server.security_mode,
    )

    if dry_run or not config.loki.enabled:
        sink: Sink = LoggingSink()
    else:
        sink = LokiSink(
            loki_client=LokiClient(
                loki_url=config.loki.url,
                timeout=config.loki.timeout,
                max_retries=config.loki.max_retries,
            ),
            batch_size=config.loki.batch_size,
        )

    return PollService(
        session=session,
        registry=registry,
        sink=sink,
        server_name=server_name,
        poll_interval=config.poll.interval_seconds,
        read_timeout=config.server.read_timeout,
    )
