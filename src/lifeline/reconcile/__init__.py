"""Storage reconciliation audit."""

from __future__ import annotations

from .auditor import ReconciliationAuditor, compare_manifest_keys, record_findings

__all__ = ["ReconciliationAuditor", "compare_manifest_keys", "record_findings"]
