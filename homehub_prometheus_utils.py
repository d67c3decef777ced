from dataclasses import dataclass
from typing import Iterable, Sequence

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, InfoMetricFamily
from prometheus_client.metrics_core import Metric

NAMESPACE = "bt_homehub"

DEVICE_LABELS = ("host_name", "ip_address", "mac_address")


@dataclass(frozen=True)
class MetricDescriptor:
    family: type
    name: str
    documentation: str
    labels: Sequence[str] = ()

    @property
    def fqname(self) -> str:
        return f"{NAMESPACE}_{self.name}"

    def new(self) -> Metric:
        return self.family(self.fqname, self.documentation, labels=list(self.labels))


UPTIME = MetricDescriptor(GaugeMetricFamily, "uptime_seconds", "Uptime of the router")
UPLOAD_RATE = MetricDescriptor(GaugeMetricFamily, "upload_rate_mbps", "Upload rate of the router")
DOWNLOAD_RATE = MetricDescriptor(GaugeMetricFamily, "download_rate_mbps", "Download rate of the router")
# counter families get the _total suffix appended on exposition
DOWNLOAD_BYTES = MetricDescriptor(CounterMetricFamily, "download_bytes", "Total bytes downloaded by the router")
UPLOAD_BYTES = MetricDescriptor(CounterMetricFamily, "upload_bytes", "Total bytes uploaded by the router")
DEVICE_UPLOADED = MetricDescriptor(GaugeMetricFamily, "device_uploaded_bytes",
                                   "Total bytes uploaded by the device", DEVICE_LABELS)
DEVICE_DOWNLOADED = MetricDescriptor(GaugeMetricFamily, "device_downloaded_bytes",
                                     "Total bytes downloaded by the device", DEVICE_LABELS)
# info families get the _info suffix appended on exposition
BUILD = MetricDescriptor(InfoMetricFamily, "build", "Router build information", ("firmware",))
UP = MetricDescriptor(GaugeMetricFamily, "up", "Whether the router is up")

ALL_DESCRIPTORS = (
    UPTIME,
    UPLOAD_RATE,
    DOWNLOAD_RATE,
    DOWNLOAD_BYTES,
    UPLOAD_BYTES,
    DEVICE_UPLOADED,
    DEVICE_DOWNLOADED,
    BUILD,
    UP,
)


def single_value(descriptor: MetricDescriptor, value: float) -> Metric:
    metric = descriptor.new()
    metric.add_metric([], value)
    return metric

def describe_all(descriptors: Iterable[MetricDescriptor] = ALL_DESCRIPTORS):
    for d in descriptors:
        yield d.new()
