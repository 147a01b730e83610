"""
Synthetic telemetry publisher.

Streams randomly generated sensor readings over WebSocket, one
self-parameterized stream per connection.
"""

__version__ = "0.1.0"
