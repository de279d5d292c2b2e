"""
Board assembly pipeline: SWR cache, single-flight coordination, day-scan
limiter, event classification and the multi-source board aggregator.
"""
