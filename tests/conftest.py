from __future__ import annotations

import pytest

from csp_collector.services import config_loader
from csp_collector.services import metrics as metrics_service
from csp_collector.services import report_store


@pytest.fixture(autouse=True)
def isolated_storage(tmp_path, monkeypatch):
    """Point the store, metrics and config at a per-test directory."""
    storage = tmp_path / "csp-reports"
    monkeypatch.delenv("CSP_COLLECTOR_CONFIG_PATH", raising=False)
    monkeypatch.setenv("CSP_COLLECTOR_STORAGE_DIR", str(storage))
    monkeypatch.setattr(config_loader, "_CACHE", None)
    monkeypatch.setattr(report_store, "_STORAGE_DIR", None)
    monkeypatch.setattr(metrics_service, "_METRICS_FILE", tmp_path / "metrics.json")
    metrics_service.reset()
    yield storage
    metrics_service.reset()
