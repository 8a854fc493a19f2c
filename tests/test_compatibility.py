from rigwizard.builder.compatibility import (
    case_fits_board,
    check_compatibility,
    cooler_fits_cpu,
    cooler_socket_tokens,
    cpu_fits_board,
    estimate_cpu_tdp,
    estimate_gpu_tdp,
    is_ddr5_capable_cpu,
    is_ddr5_only_cpu,
    psu_fits_system,
    ram_fits_board,
    recommended_wattage,
)
from rigwizard.config import ConfiguratorPolicy
from rigwizard.schemas import Build, Component


def test_cpu_and_board_match_on_canonical_socket(sku):
    assert cpu_fits_board(sku("CPU-I5-12400F"), sku("MB-B660-D4"))
    assert not cpu_fits_board(sku("CPU-I5-12400F"), sku("MB-B650"))
    assert not cpu_fits_board(sku("CPU-R5-5600"), sku("MB-B650"))


def test_cpu_without_socket_falls_back_to_chipset(sku):
    cpu = Component(sku="CPU-X", name="Mystery CPU", category="cpu", price=100, chipset="B650")
    assert cpu_fits_board(cpu, sku("MB-B650"))

    blank = Component(sku="CPU-Y", name="Blank CPU", category="cpu", price=100)
    assert not cpu_fits_board(blank, sku("MB-B650"))


def test_ram_requires_shared_memory_type(sku):
    assert ram_fits_board(sku("RAM-D4-16"), sku("MB-B660-D4"))
    assert not ram_fits_board(sku("RAM-D5-32"), sku("MB-B660-D4"))


def test_cooler_socket_aliases():
    assert cooler_socket_tokens("sTRX4") == ["TR4"]
    assert cooler_socket_tokens("LGA115x") == ["LGA1150", "LGA1151", "LGA1155", "LGA1156"]
    assert cooler_socket_tokens("") == []


def test_cooler_fits_by_canonical_socket(sku):
    assert cooler_fits_cpu(sku("COOL-AIR"), sku("CPU-U7-265K"))
    assert not cooler_fits_cpu(sku("COOL-BUDGET"), sku("CPU-U7-265K"))

    threadripper = Component(sku="CPU-TR", name="Threadripper", category="cpu", price=1500, socket="sTR4")
    assert cooler_fits_cpu(sku("COOL-AIO"), threadripper)

    haswell = Component(sku="CPU-OLD", name="Core i7-4770K", category="cpu", price=90, socket="LGA1150")
    assert cooler_fits_cpu(sku("COOL-BUDGET"), haswell)


def test_cooler_without_socket_list_never_fits(sku):
    bare = Component(sku="COOL-BARE", name="Mystery Cooler", category="cooler", price=10)
    assert not cooler_fits_cpu(bare, sku("CPU-I5-12400F"))


def test_case_must_be_at_least_board_form_factor(sku):
    assert case_fits_board(sku("CASE-ATX"), sku("MB-B660-D4"))
    assert case_fits_board(sku("CASE-MATX"), sku("MB-B660-D4"))
    assert not case_fits_board(sku("CASE-MATX"), sku("MB-B650"))
    assert not case_fits_board(sku("CASE-ATX"), sku("MB-X670E"))
    assert case_fits_board(sku("CASE-EATX"), sku("MB-X670E"))


def test_ddr5_platform_detection(sku):
    assert is_ddr5_only_cpu(sku("CPU-U7-265K"))
    assert is_ddr5_only_cpu(sku("CPU-R5-7600X"))
    assert not is_ddr5_only_cpu(sku("CPU-I5-12400F"))
    assert not is_ddr5_only_cpu(sku("CPU-R5-5600"))

    assert is_ddr5_capable_cpu(sku("CPU-I5-12400F"))
    assert not is_ddr5_capable_cpu(sku("CPU-R5-5600"))


class TestPowerEstimate:
    def test_recommended_wattage_rounds_up_to_fifty(self, sku, reference):
        build = Build(cpu=sku("CPU-I5-12400F"), gpu=sku("GPU-4060"), storage=[sku("SSD-500")])
        # 100 + 10 + 20 + 5 + 65 + 115 = 315, 315 * 1.25 = 393.75
        assert recommended_wattage(build, reference) == 400

    def test_gpu_quantity_multiplies_gpu_draw(self, sku, reference):
        build = Build(cpu=sku("CPU-U7-265K"), gpu=sku("GPU-4090"), gpu_quantity=2)
        # 100 + 10 + 20 + 5 + 125 + 900 = 1160, 1160 * 1.25 = 1450
        assert recommended_wattage(build, reference) == 1450

    def test_drive_count_override(self, sku, reference):
        build = Build(cpu=sku("CPU-I5-12400F"), gpu=sku("GPU-4060"))
        assert recommended_wattage(build, reference, drive_count=3) == 450

    def test_cpu_tdp_falls_back_to_core_count(self):
        def cpu(cores):
            return Component(sku=f"C{cores}", name="cpu", category="cpu", price=1, cores=cores)

        assert estimate_cpu_tdp(cpu(24)) == 253
        assert estimate_cpu_tdp(cpu(16)) == 241
        assert estimate_cpu_tdp(cpu(12)) == 180
        assert estimate_cpu_tdp(cpu(8)) == 142
        assert estimate_cpu_tdp(cpu(6)) == 125
        assert estimate_cpu_tdp(cpu(4)) == 65
        assert estimate_cpu_tdp(cpu(0)) == 142

    def test_unknown_gpu_uses_default_tdp(self, sku, reference):
        policy = ConfiguratorPolicy()
        assert estimate_gpu_tdp(sku("GPU-GENERIC"), reference, policy) == 250
        assert estimate_gpu_tdp(sku("GPU-RX7600"), reference, policy) == 165

    def test_relaxed_psu_window(self, sku):
        policy = ConfiguratorPolicy()
        psu = sku("PSU-550")
        assert not psu_fits_system(psu, 600, policy=policy)
        assert psu_fits_system(psu, 600, relaxed=True, policy=policy)
        assert not psu_fits_system(psu, 650, relaxed=True, policy=policy)


def test_check_compatibility_lists_every_issue(sku, reference):
    build = Build(
        cpu=sku("CPU-R9-7950X"),
        motherboard=sku("MB-B660-D4"),
        ram=sku("RAM-D5-32"),
        gpu=sku("GPU-4090"),
        storage=[sku("SSD-1TB")],
        psu=sku("PSU-550"),
        case=sku("CASE-MATX"),
    )

    issues = check_compatibility(build, reference)

    assert any("CPU socket AM5" in i for i in issues)
    assert any("Memory type DDR5" in i for i in issues)
    assert any("no bundled cooler" in i for i in issues)
    assert any("PSU 550W is below the recommended" in i for i in issues)
    assert not any("case" in i for i in issues)


def test_compatible_build_has_no_issues(sku, reference):
    build = Build(
        cpu=sku("CPU-I5-12400F"),
        motherboard=sku("MB-B660-D4"),
        ram=sku("RAM-D4-16"),
        gpu=sku("GPU-4060"),
        storage=[sku("SSD-500")],
        psu=sku("PSU-550"),
        case=sku("CASE-MATX"),
        cooler=sku("COOL-AIR"),
    )

    assert check_compatibility(build, reference) == []
