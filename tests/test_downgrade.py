import pytest

from rigwizard.builder.downgrade import DOWNGRADE_PRIORITY, run_downgrades, savings_threshold
from rigwizard.builder.compatibility import check_compatibility
from rigwizard.data.repository import InMemoryCatalog
from rigwizard.schemas import Build


def _over_budget_build(sku, cooler="COOL-AIO", drive="SSD-2TB"):
    return Build(
        cpu=sku("CPU-I5-12400F"),
        motherboard=sku("MB-B660-D4"),
        ram=sku("RAM-D4-32"),
        gpu=sku("GPU-4060"),
        storage=[sku(drive)],
        psu=sku("PSU-650"),
        case=sku("CASE-ATX"),
        cooler=sku(cooler),
    )


def test_cheaper_cooler_is_tried_first(make_context, sku, reference):
    ctx = make_context(budget=1000)
    build = _over_budget_build(sku)
    assert build.total_price() == 1070

    attempts, warning = run_downgrades(ctx, build)

    assert warning is None
    assert len(attempts) == 1
    assert attempts[0].category == "cooler"
    assert attempts[0].new_sku == "COOL-AIR"
    assert attempts[0].saved == 85
    assert build.total_price() <= 1000
    assert check_compatibility(build, reference) == []


def test_cooler_removed_when_cpu_has_bundled_one(make_context, sku):
    ctx = make_context(budget=1000)
    build = _over_budget_build(sku, cooler="COOL-BUDGET", drive="SSD-4TB")
    assert build.total_price() == 1090

    attempts, warning = run_downgrades(ctx, build)

    assert [a.action for a in attempts] == ["remove", "downgrade"]
    assert attempts[0].category == "cooler"
    assert build.cooler is None
    assert attempts[1].category == "storage"
    assert attempts[1].new_sku == "SSD-2TB"
    assert warning is None
    assert build.total_price() == 950


def test_total_never_increases(make_context, sku):
    ctx = make_context(budget=1000)
    build = _over_budget_build(sku, drive="SSD-4TB")
    build.gpu = sku("GPU-4070")
    before = build.total_price()

    attempts, _ = run_downgrades(ctx, build)

    assert attempts
    assert all(a.saved > 0 for a in attempts if a.action != "failed")
    assert build.total_price() < before


def test_storage_swap_keeps_capacity_floor(make_context, sku):
    ctx = make_context(budget=1000, min_storage_gb=2000)
    build = _over_budget_build(sku, cooler="COOL-BUDGET", drive="SSD-4TB")
    build.cpu = sku("CPU-R5-7600X")
    build.motherboard = sku("MB-B650")
    build.ram = sku("RAM-D5-32")

    run_downgrades(ctx, build)

    assert sum(d.capacity_gb for d in build.storage) >= 2000


def test_failed_iteration_stops_with_warning(make_context, sku):
    build = _over_budget_build(sku, drive="SSD-4TB")
    build.cooler = None
    parts = [
        build.cpu,
        build.motherboard,
        build.ram,
        build.gpu,
        build.storage[0],
        build.psu,
        build.case,
    ]
    ctx = make_context(budget=1000, catalog_override=InMemoryCatalog(parts))

    attempts, warning = run_downgrades(ctx, build)

    assert [a.action for a in attempts] == ["failed"]
    assert warning is not None
    assert warning.overage == pytest.approx(70)
    assert warning.iterations == 1
    assert "no acceptable downgrade" in warning.reason
    assert ctx.events.by_stage("downgrade")


def test_iteration_limit_is_reported(make_context, sku, policy):
    policy.max_downgrade_iterations = 1
    ctx = make_context(budget=1000)
    build = _over_budget_build(sku, cooler="COOL-BUDGET", drive="SSD-4TB")

    attempts, warning = run_downgrades(ctx, build)

    assert len(attempts) == 1
    assert warning.iterations == 1
    assert "iteration limit" in warning.reason


def test_savings_threshold_relaxes_after_strict_iterations(make_context):
    ctx = make_context(budget=1000)
    assert savings_threshold(1, 100, ctx) == 50
    assert savings_threshold(5, 4, ctx) == 5
    assert savings_threshold(6, 100, ctx) == 0


def test_profile_protects_its_key_component():
    assert DOWNGRADE_PRIORITY["multiThreaded"][-1] == "cpu"
    assert DOWNGRADE_PRIORITY["singleThreadedGaming"][-1] == "gpu"
