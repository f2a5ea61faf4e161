"""Core pipeline machinery.

Modules
-------
chain
    ``run_chain`` and the single-use ``Chain`` handed to interceptors.
middleware
    ``MiddlewareRegistry``: source and per-destination interceptor lists.
dispatch_queue
    ``DispatchQueue``: batching, flush triggers, retry with backoff.
readiness
    ``IntegrationReadinessRegistry``: destination lifecycle and ready callbacks.
client
    ``Analytics`` and ``configure()``, which wire the above together.
"""
