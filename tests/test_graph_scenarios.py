import pytest

from rigwizard import ConfiguratorGraph, configure_build, run_configurator
from rigwizard.builder.compatibility import check_compatibility, cpu_fits_board, is_ddr5_only_cpu
from rigwizard.data.repository import InMemoryCatalog
from rigwizard.errors import HardNoCandidateError, InputValidationError
from rigwizard.events import RecordingEventSink
from rigwizard.schemas import BuildRequest, Component, MemoryType

from conftest import without


def _request(budget, profile="singleThreadedGaming", storage=500, monitor=False):
    return BuildRequest(
        budget=budget,
        workload_profile=profile,
        min_storage_gb=storage,
        include_monitor=monitor,
    )


def test_budget_gaming_build_is_ddr4_and_under_budget(catalog, reference):
    result = configure_build(_request(1000), catalog, reference=reference)
    build = result.build

    assert build.ram.sku == "RAM-D4-16"
    assert build.motherboard.memory_types == [MemoryType.DDR4]
    assert not is_ddr5_only_cpu(build.cpu)
    assert build.cpu.sku == "CPU-I5-12400F"
    assert build.gpu.sku == "GPU-4060"
    assert [d.sku for d in build.storage] == ["SSD-500", "SSD-2TB"]
    assert build.psu.sku == "PSU-550"
    assert build.case.sku == "CASE-MATX"
    assert build.cooler.sku == "COOL-AIR"
    assert build.software is None
    assert result.total_cost == 945
    assert result.under_budget is True
    assert result.downgrades == []
    assert result.budget_warning is None
    assert result.recommended_wattage == 400
    assert check_compatibility(build, reference) == []


def test_unlimited_multi_threaded_build(catalog, reference):
    result = configure_build(
        _request("Unlimited", profile="multiThreaded", storage=1000, monitor=True),
        catalog,
        reference=reference,
    )
    build = result.build

    assert result.unlimited is True
    assert build.gpu.sku == "GPU-4090"
    assert build.gpu_quantity == 2
    assert build.cpu.sku == "CPU-U7-265K"
    assert build.motherboard.sku == "MB-Z890"
    assert build.motherboard.pcie_x16_slots >= 2
    assert MemoryType.DDR5 in build.motherboard.memory_types
    assert build.ram.sku == "RAM-D5-64"
    assert build.psu.sku == "PSU-1600"
    assert build.psu_relaxed is False
    assert build.case.sku == "CASE-EATX"
    assert build.cooler.sku == "COOL-AIR"
    assert [m.sku for m in build.monitors] == ["MON-MSI"] * 3
    assert build.software.sku == "SW-WIN11"
    assert [d.sku for d in build.storage] == ["SSD-1TB"] + ["SSD-4TB"] * 5
    assert check_compatibility(build, reference) == []


def test_top_cpu_without_board_is_re_paired(catalog, reference):
    orphan = Component(
        sku="CPU-TOP",
        name="Acme X1000",
        category="cpu",
        price=500,
        socket="SP9",
        tdp=200,
        multi_thread_score=120,
        single_core_score=120,
    )
    extended = InMemoryCatalog([*catalog.all_components(), orphan])
    events = RecordingEventSink()

    result = configure_build(
        _request(2000, profile="multiThreaded", storage=1000), extended, reference=reference, events=events
    )
    build = result.build

    assert build.cpu.sku == "CPU-R9-7950X"
    assert build.motherboard.sku == "MB-B650"
    assert cpu_fits_board(build.cpu, build.motherboard)
    assert build.cooler.sku == "COOL-BUDGET"
    assert build.software.sku == "SW-WIN11"
    assert result.total_cost == 1955
    assert events.by_stage("repair")[0].data["old_cpu"] == "CPU-TOP"


def test_psu_relaxed_when_nothing_meets_recommendation(catalog, reference):
    weak = InMemoryCatalog(
        [
            *without(catalog, category="psu").all_components(),
            Component(sku="PSU-380", name="Budget 380W", category="psu", price=40, wattage=380),
            Component(sku="PSU-300", name="Budget 300W", category="psu", price=30, wattage=300),
        ]
    )

    result = configure_build(_request(1000), weak, reference=reference)

    assert result.build.psu.sku == "PSU-380"
    assert result.build.psu_relaxed is True
    assert result.build.psu.wattage >= 0.9 * result.recommended_wattage
    assert result.to_response()["psuRelaxed"] is True
    assert result.total_cost == 930


def test_over_budget_build_carries_warning(catalog, reference):
    expensive_gpus = without(catalog, "GPU-4060", "GPU-RX7600", "GPU-GENERIC")

    result = configure_build(_request(1000), expensive_gpus, reference=reference)

    assert result.build.gpu.sku == "GPU-4070"
    assert result.under_budget is False
    assert [d.action for d in result.downgrades] == ["failed"]
    assert result.budget_warning.overage == pytest.approx(50)
    response = result.to_response()
    assert response["underBudget"] is False
    assert response["budgetWarning"]["iterations"] == 1


class FlakyCatalog(InMemoryCatalog):
    def __init__(self, components, failing_category):
        super().__init__(components)
        self.failing_category = failing_category

    def query(self, query):
        if query.category == self.failing_category:
            raise ConnectionError("backend down")
        return super().query(query)


def test_backend_failure_on_monitor_still_builds(catalog, reference):
    flaky = FlakyCatalog(catalog.all_components(), "monitor")
    events = RecordingEventSink()

    result = configure_build(_request(1000, monitor=True), flaky, reference=reference, events=events)

    assert result.build.monitors == []
    assert result.build.gpu.sku == "GPU-4060"
    failures = [e for e in events.by_category("monitor") if e.message == "catalog query failed"]
    assert failures and "backend down" in failures[0].data["error"]

    response = run_configurator(
        {"budget": 1000, "workloadProfile": "singleThreadedGaming", "includeMonitor": True},
        flaky,
        reference=reference,
    )
    assert "error" not in response
    assert "monitor" not in response["build"]


def test_same_input_same_output(catalog, reference):
    first = configure_build(_request(1200, profile="multiThreaded"), catalog, reference=reference)
    second = configure_build(_request(1200, profile="multiThreaded"), catalog, reference=reference)

    assert first.to_response() == second.to_response()


def test_graph_emits_stage_events(catalog, reference):
    events = RecordingEventSink()
    graph = ConfiguratorGraph(catalog, reference=reference, events=events)

    graph.run(_request(1000))

    stages = {e.stage for e in events.events}
    assert {"allocate", "search", "select", "filler", "validate"} <= stages
    selected = {e.category for e in events.by_stage("select")}
    assert {"cpu", "motherboard", "ram", "gpu", "storage", "psu", "case", "cooler"} <= selected


def test_missing_category_raises(catalog, reference):
    with pytest.raises(HardNoCandidateError) as exc:
        configure_build(_request(1000), without(catalog, category="gpu"), reference=reference)
    assert exc.value.category == "gpu"


def test_low_budget_raises_before_selection(catalog, reference):
    events = RecordingEventSink()
    with pytest.raises(InputValidationError):
        configure_build(_request(999), catalog, reference=reference, events=events)
    assert events.by_stage("select") == []


class TestRunConfigurator:
    def test_success_response_uses_camel_case(self, catalog, reference):
        response = run_configurator(
            {"budget": 1000, "workloadProfile": "singleThreadedGaming", "minStorageGB": 500},
            catalog,
            reference=reference,
        )

        assert response["totalCost"] == 945
        assert response["underBudget"] is True
        assert response["build"]["gpu"]["quantity"] == 1
        assert response["build"]["ram"]["memory_types"] == ["DDR4"]
        assert "monitor" not in response["build"]

    def test_budget_below_minimum(self, catalog, reference):
        response = run_configurator(
            {"budget": 900, "workloadProfile": "multiThreaded"}, catalog, reference=reference
        )

        assert response["error"].startswith("Budget must be at least")
        assert response["details"] == {"budget": 900.0, "minimumBudget": 1000}

    def test_invalid_profile(self, catalog, reference):
        response = run_configurator(
            {"budget": 1500, "workloadProfile": "office"}, catalog, reference=reference
        )

        assert response["error"] == "Invalid build request"
        assert response["details"]["errors"][0]["field"] == "workloadProfile"

    def test_missing_category_response(self, catalog, reference):
        response = run_configurator(
            {"budget": 1000, "workloadProfile": "singleThreadedGaming"},
            without(catalog, category="gpu"),
            reference=reference,
        )

        assert response["details"] == {"missingCategory": "gpu"}
        assert "gpu" in response["error"]
