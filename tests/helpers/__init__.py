from .fakes import AbortCounter, FailingStream, FakeExifExtractor, FakeTransport, make_page
from .metric_delta import get_histogram_count, histogram_observes, metric_delta, metric_value

__all__ = [
    "AbortCounter",
    "FailingStream",
    "FakeExifExtractor",
    "FakeTransport",
    "get_histogram_count",
    "histogram_observes",
    "make_page",
    "metric_delta",
    "metric_value",
]
