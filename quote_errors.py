"""
Quote Engine - Error taxonomy

Validation errors subclass ValueError so callers that already catch ValueError
around form input keep working.
"""


# ============================================================================
# PRICING (line item validation)
# ============================================================================

class PricingError(ValueError):
    """Invalid input to a pricing function"""


class InvalidCurrency(PricingError):
    """Currency code is not TRY, USD or EUR"""


class IncompleteRateSet(PricingError):
    """Exchange rate set is missing USD or EUR"""


class InvalidMargin(PricingError):
    """Profit margin outside [0, 1)"""


class InvalidQuantity(PricingError):
    """Quantity is zero or negative"""


class InvalidPrice(PricingError):
    """List price is negative"""


class InvalidDiscount(PricingError):
    """Discount rate outside [0, 1]"""


class InvalidRate(PricingError):
    """Exchange rate is not a positive finite number"""


# ============================================================================
# REVISIONS
# ============================================================================

class RevisionError(ValueError):
    """A revision mutation was refused"""


class EmptyClusterDeletion(RevisionError):
    """Single-version delete on a cluster that has only one version"""


class OrphanRevision(RevisionError):
    """Mutation would leave a quote pointing at a root with no cluster"""


class RevisionNotFound(RevisionError):
    """Quote id is not part of the cluster"""


# ============================================================================
# SERVICES
# ============================================================================

class RateFetchError(RuntimeError):
    """Exchange rates could not be fetched or parsed"""
