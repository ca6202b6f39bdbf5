"""trafficmeter: per-interface throughput sampling with a local usage history."""

__version__ = "0.1.0"
