from rest_framework.throttling import UserRateThrottle, AnonRateThrottle


class BurstRateThrottle(UserRateThrottle):
    """
    Strict throttling for login attempts.
    Scope: 'burst'
    """
    scope = 'burst'


class SustainedRateThrottle(UserRateThrottle):
    """
    General API usage.
    """
    scope = 'sustained'


class CheckoutRateThrottle(AnonRateThrottle):
    """
    Anonymous buyers creating orders and payment tokens.
    """
    scope = 'checkout'
