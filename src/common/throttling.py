from ninja_extra.throttling import AnonRateThrottle, UserRateThrottle


class AnonDefaultThrottle(AnonRateThrottle):
    rate = "60/min"


class UserDefaultThrottle(UserRateThrottle):
    rate = "100/min"


class WriteThrottle(UserRateThrottle):
    rate = "100/min"


class PurchaseThrottle(UserRateThrottle):
    rate = "30/min"


class CheckInThrottle(UserRateThrottle):
    """Door scanners burst; allow a steady queue of scans per operator."""

    rate = "600/min"
