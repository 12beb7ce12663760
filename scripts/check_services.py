#!/usr/bin/env python3
"""
Разовая проверка сервисов через шлюз: один цикл опроса health, как на экране статуса.
Код выхода 1, если хоть один сервис недоступен.

    python scripts/check_services.py
"""
import asyncio
import sys

from dashboard.core.config import settings
from dashboard.core.logging import configure_logging
from dashboard.integrations.gateway_client import GatewayApiClient
from dashboard.services.polling import PollingAggregator, aggregate_health, make_targets


async def check_services() -> int:
    print("--- Проверка сервисов ---")
    print(f"Шлюз: {settings.GATEWAY_URL}")

    client = GatewayApiClient()
    aggregator = PollingAggregator(client)
    try:
        results = await aggregator.sweep(make_targets(settings.health_targets))
    finally:
        await client.close()

    for service in results:
        mark = "✅" if service.status == "healthy" else "❌"
        line = f"{mark} {service.name}: {service.status} ({service.response_time} ms)"
        if service.error:
            line += f" - {service.error}"
        print(line)

    overall = aggregate_health(results)
    print(f"\nИтог: {overall}")
    return 1 if overall == "down" else 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(asyncio.run(check_services()))
