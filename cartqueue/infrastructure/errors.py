class StoreError(Exception):
    """Store unreachable or the statement failed; presumed transient"""
    pass


class DuplicateCartItemError(StoreError):
    """A cart item with the same idempotency key already exists"""
    pass


class CacheError(Exception):
    """Cache unreachable or command failed"""
    pass


class BrokerError(Exception):
    """Broker unreachable or publish not confirmed"""
    pass


class InvalidCartItemError(Exception):
    """The store refused the row's values (out of range, wrong type); retrying cannot help"""
    pass
