"""
Ingestion layer: API clients, payload contracts, and the
rate-limited scheduler that paces every network-bound step.
"""
