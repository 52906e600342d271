"""
DRF throttling classes for the MHAR-BSI API.

Separate read/write rates to allow higher read throughput
while protecting write endpoints (login, imports) from abuse.
"""

from rest_framework.throttling import UserRateThrottle


class ReadRateThrottle(UserRateThrottle):
    scope = 'read'


class WriteRateThrottle(UserRateThrottle):
    scope = 'write'
