#!/usr/bin/env python3
"""
Prometheus exporter for BT Home Hub router metrics.

This module polls the hub's JSON request API on every scrape and exports
link rates, uptime, firmware build, WAN byte counters and per-device
bandwidth totals in Prometheus format.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from typing import Dict, Iterable, Mapping, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server

import homehub_client
from homehub_client_exceptions import HomeHubException
from homehub_models import BandwidthRecord, Device, DeviceBandwidth, SummaryStatistics
from homehub_prometheus_utils import *
from homehub_utils import parse_listen_address

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Metrics Registry
registry = CollectorRegistry()

scrape_duration_seconds = Histogram(
    "bt_homehub_scrape_duration_seconds",
    "Time spent scraping router metrics",
    registry=registry
)

scrape_errors_total = Counter(
    "bt_homehub_scrape_errors_total",
    "Total number of scrape errors",
    registry=registry
)


def build_device_table(devices: Iterable[Device]) -> Dict[str, Device]:
    """Index active WiFi/Ethernet devices by upper-cased MAC address."""
    table = {}
    for device in devices:
        if device.is_monitored:
            table[device.mac_address] = device
        else:
            logger.debug(f"Ignoring device {device.mac_address} "
                         f"(active={device.active}, interface={device.interface_type!r})")
    return table


def aggregate_bandwidth(devices: Mapping[str, Device], body: str) -> Dict[str, DeviceBandwidth]:
    """
    Fold bandwidth CSV lines into per-device totals.

    Every line is one connection record; several lines for the same MAC are
    summed. Lines for MAC addresses missing from ``devices`` are dropped.
    """
    totals: Dict[str, DeviceBandwidth] = {}
    for line in body.splitlines():
        record = BandwidthRecord.from_line(line)
        if record is None:
            continue
        device = devices.get(record.mac_address)
        if device is None:
            continue
        bandwidth = totals.get(device.mac_address)
        if bandwidth is None:
            if device.active:
                bandwidth = DeviceBandwidth(device.mac_address)
                bandwidth.add(record)
                totals[device.mac_address] = bandwidth
        else:
            bandwidth.add(record)
    return totals


class HomeHubCollector:
    """Custom collector: every registry collection is one scrape of the hub."""

    def __init__(self, client: homehub_client.RouterClient):
        self.client = client

    def describe(self):
        return list(describe_all())

    def collect(self):
        with scrape_duration_seconds.time():
            yield from self._scrape()

    def _scrape(self):
        summary: Optional[SummaryStatistics] = None
        bandwidth = None
        failed = False

        # both calls are always issued; either failing fails the scrape
        try:
            summary = self.client.get_summary_statistics()
        except HomeHubException as e:
            logger.error(f"Error fetching summary statistics from Home Hub: {e}")
            failed = True
        try:
            bandwidth = self.client.get_bandwidth_statistics()
        except HomeHubException as e:
            logger.error(f"Error fetching bandwidth statistics from Home Hub: {e}")
            failed = True

        if failed:
            scrape_errors_total.inc()
            yield single_value(UP, 0)
            return

        yield from self._summary_metrics(summary)

        devices = build_device_table(summary.devices or [])
        totals = aggregate_bandwidth(devices, bandwidth.body)
        yield from self._device_metrics(devices, totals)

        logger.debug(f"Scrape complete: {len(devices)} devices, {len(totals)} with bandwidth data")
        yield single_value(UP, 1)

    @staticmethod
    def _summary_metrics(summary: SummaryStatistics):
        if summary.firmware_version is not None:
            build = BUILD.new()
            build.add_metric([summary.firmware_version], {})
            yield build
        if summary.download_rate is not None:
            yield single_value(DOWNLOAD_RATE, summary.download_rate)
        if summary.upload_rate is not None:
            yield single_value(UPLOAD_RATE, summary.upload_rate)
        if summary.uptime is not None:
            yield single_value(UPTIME, summary.uptime)
        if summary.downloaded_bytes is not None:
            yield single_value(DOWNLOAD_BYTES, summary.downloaded_bytes)
        if summary.uploaded_bytes is not None:
            yield single_value(UPLOAD_BYTES, summary.uploaded_bytes)

    @staticmethod
    def _device_metrics(devices: Mapping[str, Device], totals: Mapping[str, DeviceBandwidth]):
        uploaded = DEVICE_UPLOADED.new()
        downloaded = DEVICE_DOWNLOADED.new()
        for mac, bandwidth in totals.items():
            device = devices[mac]
            labels = [device.host_name, device.ip_address, device.mac_address]
            uploaded.add_metric(labels, bandwidth.uploaded)
            downloaded.add_metric(labels, bandwidth.downloaded)
        yield uploaded
        yield downloaded


def create_app(hub_address: str, username: str, password: str, listen_address: str = ":19092",
               timeout: float = homehub_client.DEFAULT_TIMEOUT):
    """
    Create and configure the Prometheus metrics exporter.

    Args:
        hub_address: Home Hub host/IP address
        username: Home Hub admin user
        password: Home Hub admin password
        listen_address: [host]:port to expose metrics on (default: :19092)
        timeout: Per-request HTTP timeout in seconds

    Returns:
        Callable that starts the exporter
    """

    def app():
        addr, port = parse_listen_address(listen_address)
        logger.info(f"Connecting to Home Hub at {hub_address}")

        factory = homehub_client.RouterClientFactory(hub_address, timeout=timeout)
        try:
            client = factory.auth(username, password)
        except HomeHubException as e:
            logger.error(f"Home Hub login failed. Unable to collect metrics: {e}")
            sys.exit(1)

        registry.register(HomeHubCollector(client))

        start_http_server(port, addr=addr, registry=registry)
        logger.info(f"Starting Home Hub exporter, metrics available at http://{addr}:{port}/metrics")

        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Shutting down exporter")

    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Prometheus exporter for BT Home Hub router metrics",
        epilog="Environment variables can be used as defaults: "
               "HUB_EXPORTER_LISTEN_ADDRESS, HUB_ADDRESS, HUB_USERNAME, HUB_PASSWORD, "
               "HUB_TIMEOUT, HUB_LOG_LEVEL"
    )
    parser.add_argument(
        "--listen-address",
        default=os.getenv("HUB_EXPORTER_LISTEN_ADDRESS", ":19092"),
        help="Address that the metrics HTTP server will listen on (default: :19092) "
             "[env: HUB_EXPORTER_LISTEN_ADDRESS]"
    )
    parser.add_argument(
        "--hub-address",
        default=os.getenv("HUB_ADDRESS", "192.168.1.254"),
        help="Address of the Home Hub router (default: 192.168.1.254) [env: HUB_ADDRESS]"
    )
    parser.add_argument(
        "--hub-username",
        default=os.getenv("HUB_USERNAME", "admin"),
        help="Username for the Home Hub router (default: admin) [env: HUB_USERNAME]"
    )
    default_password = os.getenv("HUB_PASSWORD")
    parser.add_argument(
        "--hub-password",
        default=default_password,
        required=not default_password,
        help="Password for the Home Hub router [env: HUB_PASSWORD]"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=float(os.getenv("HUB_TIMEOUT", str(homehub_client.DEFAULT_TIMEOUT))),
        help="HTTP timeout in seconds for each request to the hub (default: 10) [env: HUB_TIMEOUT]"
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("HUB_LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO) [env: HUB_LOG_LEVEL]"
    )
    return parser


def main(argv=None):
    """Main entry point for the Prometheus exporter."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.hub_password:
        parser.error("--hub-password is required or set HUB_PASSWORD environment variable")

    # Set logging level
    logging.getLogger().setLevel(getattr(logging, args.log_level))

    app = create_app(args.hub_address, args.hub_username, args.hub_password,
                     args.listen_address, args.timeout)
    app()


if __name__ == "__main__":
    main()
