"""Tenant rule lists, read by the rules-specialist responder."""

from __future__ import annotations

import asyncio
import re
from typing import Dict, List

import structlog

from libs.firestore import config as config_store

logger = structlog.get_logger(__name__)

_RULE_SEPARATOR = re.compile(r"[;\n]+")


def parse_rules(text: str) -> List[str]:
    """Split free text into rules on semicolons or newlines, dropping blanks."""
    return [rule.strip() for rule in _RULE_SEPARATOR.split(text or "") if rule.strip()]


def format_rules(rules: List[str]) -> str:
    if not rules:
        return "No rules set yet"
    return "\n".join(f"{i}. {rule}" for i, rule in enumerate(rules, start=1))


class RulesBook:
    """Stores rules at servers/{tenant_id}/config/rules, or in memory without Firestore."""

    def __init__(self, firestore_client=None, store_timeout: float = 5.0):
        self.firestore_client = firestore_client
        self.store_timeout = store_timeout
        self._rules: Dict[str, List[str]] = {}

    async def get_rules(self, tenant_id: str) -> List[str]:
        if tenant_id in self._rules:
            return list(self._rules[tenant_id])

        if self.firestore_client is None:
            return []

        try:
            rules = await asyncio.wait_for(
                config_store.get_rules(self.firestore_client, tenant_id),
                timeout=self.store_timeout,
            )
        except Exception as e:
            logger.error("Get rules error", tenant_id=tenant_id, error=str(e))
            return []

        self._rules[tenant_id] = rules or []
        return list(self._rules[tenant_id])

    async def set_rules(self, tenant_id: str, rules: List[str]) -> List[str]:
        """Replace the tenant's rules. Store errors propagate to the caller."""
        cleaned = [rule.strip() for rule in rules if rule and rule.strip()]

        if self.firestore_client is not None:
            await asyncio.wait_for(
                config_store.save_rules(self.firestore_client, tenant_id, cleaned),
                timeout=self.store_timeout,
            )

        self._rules[tenant_id] = cleaned
        logger.info("Rules updated", tenant_id=tenant_id, rule_count=len(cleaned))
        return list(cleaned)

    async def add_rule(self, tenant_id: str, rule: str) -> List[str]:
        rules = await self.get_rules(tenant_id)
        rules.append(rule)
        return await self.set_rules(tenant_id, rules)
