"""Self-healing SQL synthesis loop."""

from packsql.healing.runner import HealedQuery, SelfHealingSqlRunner, brief_execution_error

__all__ = ["HealedQuery", "SelfHealingSqlRunner", "brief_execution_error"]
