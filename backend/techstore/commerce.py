# Overview: Wires the commerce services around one Database handle.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from .extensions import Database
from .services.card_vault import CardVault, resolve_card_key
from .services.checkout_service import CheckoutService
from .services.inventory_service import InventoryLedger
from .services.order_lifecycle import OrderStateMachine
from .services.pricing_service import PricingResolver
from .services.refund_service import RefundWorkflow
from .services.revenue_service import RevenueAggregator


@dataclass
class CommerceServices:
    database: Database
    pricing: PricingResolver
    inventory: InventoryLedger
    checkout: CheckoutService
    orders: OrderStateMachine
    refunds: RefundWorkflow
    revenue: RevenueAggregator


def build_services(database: Database, config) -> CommerceServices:
    """Construct every service, leaf-first, sharing ``database``."""
    vault = CardVault(resolve_card_key(config.get("CARD_ENCRYPTION_KEY"), config["SECRET_KEY"]))

    pricing = PricingResolver(database)
    inventory = InventoryLedger(database)
    checkout = CheckoutService(database, pricing, inventory, vault)
    orders = OrderStateMachine(database, inventory)
    refunds = RefundWorkflow(database, orders, int(config.get("REFUND_WINDOW_DAYS", 30)))
    revenue = RevenueAggregator(database)

    return CommerceServices(
        database=database,
        pricing=pricing,
        inventory=inventory,
        checkout=checkout,
        orders=orders,
        refunds=refunds,
        revenue=revenue,
    )


def get_services() -> CommerceServices:
    return current_app.extensions["commerce"]
