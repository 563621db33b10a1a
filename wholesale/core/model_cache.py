"""
Caching for the customer directory.

The customer list is read on every billing screen, so it is cached per search
term and invalidated whenever a customer, bill or payment changes.
"""
from django.core.cache import cache
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from .cache_utils import (
    CUSTOMER_LIST_CACHE_TTL, make_cache_key, invalidate_namespace, invalidate_reports_cache,
)

logger = logging.getLogger(__name__)

CUSTOMER_LIST_NAMESPACE = 'customer_list'


def get_customer_list_cache_key(search_query: str = '') -> str:
    """Get cache key for customer list (filtered by search term)"""
    return make_cache_key(CUSTOMER_LIST_NAMESPACE, search_query or 'all')


def get_cached_customer_list(search_query: str = ''):
    cached_data = cache.get(get_customer_list_cache_key(search_query))
    if cached_data is not None:
        logger.debug(f"Cache hit for customer list: {search_query or 'all'}")
    return cached_data


def cache_customer_list(search_query, data, ttl: int = None):
    cache.set(get_customer_list_cache_key(search_query), data, ttl or CUSTOMER_LIST_CACHE_TTL)


def invalidate_customer_cache():
    """Invalidate all customer list entries"""
    invalidate_namespace(CUSTOMER_LIST_NAMESPACE)


def invalidate_ledger_caches():
    """Balances changed: customer list and reports are stale"""
    invalidate_customer_cache()
    invalidate_reports_cache()


@receiver(post_save, sender='parties.Customer')
@receiver(post_delete, sender='parties.Customer')
def customer_changed(sender, instance, **kwargs):
    invalidate_ledger_caches()
    logger.debug(f"Cache invalidated for customer: {instance.full_name} (ID: {instance.id})")


@receiver(post_save, sender='billing.Bill')
@receiver(post_save, sender='billing.Payment')
@receiver(post_save, sender='orders.Order')
def ledger_row_saved(sender, instance, **kwargs):
    invalidate_ledger_caches()
