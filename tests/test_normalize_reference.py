import json

import pytest

from rigwizard.data.normalize import (
    canonical_socket,
    classify_form_factor,
    classify_storage_kind,
    component_from_record,
    parse_capacity_gb,
    parse_memory_types,
)
from rigwizard.data.reference import ReferenceData, extract_gpu_model, load_reference_data
from rigwizard.schemas import FormFactor, MemoryType, StorageKind


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("LGA 1700", "LGA1700"),
        ("Socket AM5", "AM5"),
        ("  lga1851 ", "LGA1851"),
        (None, ""),
    ],
)
def test_canonical_socket(raw, expected):
    assert canonical_socket(raw) == expected


def test_form_factor_classification():
    assert classify_form_factor("Micro-ATX") == FormFactor.MATX
    assert classify_form_factor("Mini ITX") == FormFactor.ITX
    assert classify_form_factor("Extended ATX") == FormFactor.EATX
    assert classify_form_factor("E-ATX") == FormFactor.EATX
    assert classify_form_factor("ATX") == FormFactor.ATX
    assert classify_form_factor(["Mini-ITX", "ATX", "mATX"], largest=True) == FormFactor.ATX
    assert classify_form_factor("BTX") is None


def test_memory_type_parsing():
    assert parse_memory_types("DDR5-6000") == [MemoryType.DDR5]
    assert parse_memory_types(["DDR4", "ddr5", "DDR4"]) == [MemoryType.DDR4, MemoryType.DDR5]
    assert parse_memory_types(None) == []


def test_capacity_parsing():
    assert parse_capacity_gb("2TB") == 2000
    assert parse_capacity_gb("512 GB") == 512
    assert parse_capacity_gb(1000) == 1000
    assert parse_capacity_gb("unknown") == 0


def test_storage_kind_falls_back_to_name():
    assert classify_storage_kind("M.2") == StorageKind.SSD
    assert classify_storage_kind(None, "Seagate 4TB HDD") == StorageKind.HDD
    assert classify_storage_kind(None, "Mystery drive") is None


def test_component_from_raw_record():
    part = component_from_record(
        {
            "_id": "abc123",
            "name": "MSI PRO B760M-A",
            "currentPrice": "139.99",
            "socket": "LGA 1700",
            "chipset": "b760",
            "memoryType": ["DDR5"],
            "formFactor": "Micro-ATX",
            "specs": {"pcieSlotCount": 1},
            "isAvailable": True,
        },
        category="motherboard",
    )

    assert part.sku == "abc123"
    assert part.price == pytest.approx(139.99)
    assert part.socket == "LGA1700"
    assert part.chipset == "B760"
    assert part.memory_types == [MemoryType.DDR5]
    assert part.form_factor == FormFactor.MATX
    assert part.pcie_x16_slots == 1
    assert part.available is True

    def cpu(flag):
        record = {"sku": "C", "name": "X", "currentPrice": 100, "socket": "AM4", "coolerIncluded": flag}
        return component_from_record(record, "cpu").bundled_cooler

    assert cpu(True) is True
    assert cpu("true") is True
    assert cpu("Yes") is True
    assert cpu("false") is False
    assert cpu("no") is False
    assert cpu("0") is False
    assert cpu(None) is False


def test_cooler_socket_field_moves_to_cooler_sockets():
    part = component_from_record(
        {"sku": "C1", "name": "Cooler", "price": 30, "socket": ["LGA 1700", "AM5"]},
        category="cooler",
    )
    assert part.socket == ""
    assert part.cooler_sockets == ["LGA1700", "AM5"]


def test_component_is_immutable(sku):
    part = sku("CPU-I5-12400F")
    with pytest.raises(Exception):
        part.price = 1


def test_record_without_category_is_rejected():
    with pytest.raises(ValueError):
        component_from_record({"name": "orphan", "price": 10})


class TestReferenceData:
    def test_extract_gpu_model(self):
        assert extract_gpu_model("ASUS TUF RTX 4070 Ti SUPER OC") == "RTX 4070 Ti Super"
        assert extract_gpu_model("Sapphire Nitro+ RX 7900 XTX") == "RX 7900 XTX"
        assert extract_gpu_model("EVGA GTX 1080 Ti FTW3") == "GTX 1080 Ti"
        assert extract_gpu_model("Intel Arc A770 16GB") == "Arc A770"
        assert extract_gpu_model("Generic Workstation Card") == "Unknown"

    def test_longest_model_name_wins(self, reference):
        assert reference.gpu_score("Sapphire RX 7900 XTX") == pytest.approx(120 / 150)
        assert reference.gpu_score("XFX RX 7900 XT") == pytest.approx(105 / 150)

    def test_unknown_gpu_has_no_score(self, reference):
        assert reference.gpu_score("Generic Workstation Card") is None
        assert ReferenceData().gpu_score("RTX 4090") is None

    def test_tdp_lookup_uses_extracted_model(self, reference):
        assert reference.gpu_tdp_for("MSI GeForce RTX 4060 Ventus 2X", 250) == 115
        assert reference.gpu_tdp_for("Unknown card", 250) == 250

    def test_packaged_tables_load(self):
        data = load_reference_data()
        assert data.gpu_benchmarks
        assert data.gpu_tdp
        assert data.max_benchmark() > 0

    def test_tables_load_from_path(self, tmp_path):
        path = tmp_path / "ref.json"
        path.write_text(
            json.dumps({"version": "x", "gpu_benchmarks": {"RTX 3060": 40}, "gpu_tdp": {"RTX 3060": 170}}),
            encoding="utf-8",
        )
        data = load_reference_data(path)
        assert data.version == "x"
        assert data.gpu_score("Zotac RTX 3060 Twin Edge") == 1.0
