from pathlib import Path

import pytest

from rigwizard.builder.budget import allocate_budget
from rigwizard.builder.context import SelectionContext
from rigwizard.config import ConfiguratorPolicy
from rigwizard.data.reference import ReferenceData
from rigwizard.data.repository import InMemoryCatalog, JsonCatalog
from rigwizard.events import RecordingEventSink
from rigwizard.schemas import BuildRequest


ROOT = Path(__file__).resolve().parent
CATALOG_PATH = ROOT / "data" / "catalog.json"


@pytest.fixture
def catalog():
    return JsonCatalog(CATALOG_PATH)


@pytest.fixture
def reference():
    return ReferenceData(
        version="test",
        gpu_benchmarks={
            "RTX 4090": 150.0,
            "RTX 4070": 90.0,
            "RTX 4060": 60.0,
            "RX 7600": 55.0,
            "RX 7900 XTX": 120.0,
            "RX 7900 XT": 105.0,
        },
        gpu_tdp={
            "RTX 4090": 450,
            "RTX 4070": 200,
            "RTX 4060": 115,
            "RX 7600": 165,
        },
    )


@pytest.fixture
def policy():
    return ConfiguratorPolicy()


@pytest.fixture
def sku(catalog):
    def lookup(value):
        part = catalog.find_by_sku(value)
        assert part is not None, value
        return part

    return lookup


@pytest.fixture
def make_context(catalog, reference, policy):
    def factory(
        budget=1000,
        profile="singleThreadedGaming",
        min_storage_gb=500,
        include_monitor=False,
        catalog_override=None,
        events=None,
    ):
        request = BuildRequest(
            budget=budget,
            workload_profile=profile,
            min_storage_gb=min_storage_gb,
            include_monitor=include_monitor,
        )
        return SelectionContext(
            catalog=catalog_override or catalog,
            allocation=allocate_budget(budget, profile, policy),
            request=request,
            policy=policy,
            reference=reference,
            events=events if events is not None else RecordingEventSink(),
        )

    return factory


def without(catalog, *skus, category=None):
    """Copy of a catalog without the given SKUs (or without a whole category)."""
    return InMemoryCatalog(
        c
        for c in catalog.all_components()
        if c.sku not in skus and (category is None or c.category != category)
    )
