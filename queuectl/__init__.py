"""
queuectl

A durable background job queue: shell commands are claimed by independent
workers, retried with exponential backoff and parked in a dead letter queue
once their retries are exhausted.
"""

__version__ = "1.0.0"
