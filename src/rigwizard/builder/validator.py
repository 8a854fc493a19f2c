"""
配置验证 - Build Validation

所有修改完成后重新检查兼容性；任何不匹配都视为上游缺陷并抛出异常。
Re-check compatibility after every mutation; any mismatch is an upstream
defect and raises.
"""

from __future__ import annotations

from ..config import ConfiguratorPolicy
from ..data.reference import ReferenceData
from ..errors import CompatibilityViolationError, HardNoCandidateError
from ..schemas import Build
from .compatibility import (
    case_fits_board,
    cooler_fits_cpu,
    cpu_fits_board,
    psu_fits_system,
    ram_fits_board,
    recommended_wattage,
)

MANDATORY_CATEGORIES = ("cpu", "motherboard", "ram", "gpu", "storage", "psu", "case")


def ensure_mandatory(build: Build) -> None:
    """
    必选类别检查 - Mandatory category check

    参数 Parameters:
        build: 选择阶段结束后的配置
               Build after the selection phase

    异常 Raises:
        HardNoCandidateError: 第一个为空的必选类别
                              First empty mandatory category
    """
    for category in MANDATORY_CATEGORIES:
        value = getattr(build, category)
        if not value:
            raise HardNoCandidateError(category)
    if build.cooler_required() and build.cooler is None:
        raise HardNoCandidateError(
            "cooler", "Build generation failed: CPU has no bundled cooler and no compatible cooler exists"
        )


def validate_build(
    build: Build,
    reference: ReferenceData,
    policy: ConfiguratorPolicy | None = None,
) -> None:
    policy = policy or ConfiguratorPolicy()
    cpu, board = build.cpu, build.motherboard
    ensure_mandatory(build)

    if not cpu_fits_board(cpu, board):
        raise CompatibilityViolationError(
            "CPU and motherboard are incompatible",
            {
                "cpu": cpu.name,
                "cpuSocket": cpu.socket,
                "cpuChipset": cpu.chipset,
                "motherboard": board.name,
                "motherboardSocket": board.socket,
                "motherboardChipset": board.chipset,
            },
        )

    if not ram_fits_board(build.ram, board):
        raise CompatibilityViolationError(
            "RAM and motherboard are incompatible",
            {
                "ram": build.ram.name,
                "ramMemoryTypes": [mt.value for mt in build.ram.memory_types],
                "motherboard": board.name,
                "motherboardMemoryTypes": [mt.value for mt in board.memory_types],
            },
        )

    if not case_fits_board(build.case, board):
        raise CompatibilityViolationError(
            "Case cannot hold the motherboard",
            {
                "case": build.case.name,
                "caseFormFactor": build.case.form_factor.value if build.case.form_factor else None,
                "motherboard": board.name,
                "motherboardFormFactor": board.form_factor.value if board.form_factor else None,
            },
        )

    if build.cooler is not None and not cooler_fits_cpu(build.cooler, cpu):
        raise CompatibilityViolationError(
            "Cooler does not support the CPU socket",
            {
                "cooler": build.cooler.name,
                "coolerSockets": list(build.cooler.cooler_sockets),
                "cpu": cpu.name,
                "cpuSocket": cpu.socket,
            },
        )

    needed = recommended_wattage(build, reference, policy)
    if not psu_fits_system(build.psu, needed, build.psu_relaxed, policy):
        raise CompatibilityViolationError(
            "PSU wattage is below the system requirement",
            {
                "psu": build.psu.name,
                "psuWattage": build.psu.wattage,
                "recommendedWattage": needed,
                "psuRelaxed": build.psu_relaxed,
            },
        )
