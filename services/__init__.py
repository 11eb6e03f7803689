"""
Quote Engine Services

Storage access, exchange rates and catalog lookups around the pure
pricing and revision engines.
"""

from .database import get_supabase, reset_supabase
from .currency_service import (
    fetch_current_rates,
    refresh_rates,
    rates_for_new_quote,
    parse_tcmb_rates,
    format_rates_for_display,
)
from .catalog_service import (
    get_product,
    get_products,
    get_installation_types,
    add_catalog_products,
)
from .quote_service import (
    get_all_quotes,
    get_quote,
    get_cluster,
    get_job_assignments,
    get_personnel_names,
    browse,
    commit_batch,
    create_quote,
    create_revision,
    save_quote,
    delete_version,
    delete_cluster,
    delete_selected,
    change_status,
)

__all__ = [
    # Database
    "get_supabase",
    "reset_supabase",
    # Exchange rates
    "fetch_current_rates",
    "refresh_rates",
    "rates_for_new_quote",
    "parse_tcmb_rates",
    "format_rates_for_display",
    # Catalog
    "get_product",
    "get_products",
    "get_installation_types",
    "add_catalog_products",
    # Quotes
    "get_all_quotes",
    "get_quote",
    "get_cluster",
    "get_job_assignments",
    "get_personnel_names",
    "browse",
    "commit_batch",
    "create_quote",
    "create_revision",
    "save_quote",
    "delete_version",
    "delete_cluster",
    "delete_selected",
    "change_status",
]
