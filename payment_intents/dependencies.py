from functools import lru_cache

from fastapi import Depends

from payment_intents.cart import Catalog
from payment_intents.config import Settings, get_settings
from payment_intents.database import SessionLocal
from payment_intents.lifecycle import LifecycleManager
from payment_intents.signature import SignatureVerifier
from payment_intents.store import IntentStore
from payment_intents.stripe_service import StripeGateway


@lru_cache
def get_intent_store() -> IntentStore:
    # One instance per process so every request shares the per-intent locks
    return IntentStore(SessionLocal)


def get_gateway(settings: Settings = Depends(get_settings)) -> StripeGateway:
    return StripeGateway(settings.stripe_secret_key)


def get_lifecycle_manager(
    store: IntentStore = Depends(get_intent_store),
    gateway: StripeGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> LifecycleManager:
    return LifecycleManager(store, gateway, currency=settings.currency)


def get_signature_verifier(settings: Settings = Depends(get_settings)) -> SignatureVerifier:
    return SignatureVerifier(settings.webhook_secret, tolerance=settings.webhook_tolerance)


@lru_cache
def _load_catalog(path) -> Catalog:
    return Catalog.from_file(path)


def get_catalog(settings: Settings = Depends(get_settings)) -> Catalog:
    return _load_catalog(settings.catalog_path)
