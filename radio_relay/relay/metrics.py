from prometheus_client import Counter, Gauge

relay_requests = Counter(
    "radio_relay_requests_total",
    "Relay requests by outcome",
    ["mode", "outcome"],
)
active_streams = Gauge(
    "radio_relay_active_streams",
    "Upstream streams currently being relayed",
    ["mode"],
)
relayed_bytes = Counter(
    "radio_relay_bytes_total",
    "Body bytes forwarded to callers",
    ["mode"],
)
