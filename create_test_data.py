#!/usr/bin/env python3
"""
Seed a demo tenant: trial subscription, zeroed usage counters and a pending
payment intent, then print a bearer token for trying the API by hand.
Run with: python create_test_data.py [tenant_id]
"""

import asyncio
import logging
import sys

from app.core import database
from app.core.auth import create_access_token
from app.core.exceptions import AlreadyProvisionedError
from app.services.payment_service import payment_service
from app.services.subscription_service import subscription_service

logging.basicConfig(level=logging.INFO, format='%(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


async def create_test_data(tenant_id: str):
    await database.init_db()

    async with database.AsyncSessionLocal() as db:
        try:
            subscription = await subscription_service.start_trial(db, tenant_id)
            logger.info(f"Trial {subscription.plan_id} for {tenant_id} ends {subscription.trial_ends_at}")
        except AlreadyProvisionedError:
            logger.info(f"Tenant {tenant_id} already provisioned, keeping its subscription")

        intent, payload = await payment_service.create_intent(db, tenant_id, "monthly")
        logger.info(f"Pending intent {intent.id}: {payload}")

    logger.info(f"Bearer token for {tenant_id}: {create_access_token(tenant_id)}")


if __name__ == "__main__":
    asyncio.run(create_test_data(sys.argv[1] if len(sys.argv) > 1 else "demo-tenant"))
