from prometheus_client import Counter, Histogram

scans_counter = Counter("dexscan_scans_total", "Total scan passes")
signals_counter = Counter("dexscan_signals_total", "Total signals accepted by scans")
scan_latency = Histogram("dexscan_scan_latency_seconds", "Scan duration seconds")
orders_counter = Counter("dexscan_orders_total", "Positions opened/closed", ["side", "mode"])
order_failures_counter = Counter("dexscan_order_failures_total", "Venue order failures", ["side"])
cycle_skips_counter = Counter("dexscan_cycle_skips_total", "Timer ticks skipped while a cycle was running", ["cycle"])
fetch_retries_counter = Counter("dexscan_fetch_retries_total", "Fetch retries", ["kind"])
fetch_stale_counter = Counter("dexscan_fetch_stale_total", "Stale cached payloads served after fetch failure")
