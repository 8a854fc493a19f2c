"""兼容性检查模块"""

from __future__ import annotations

import math
import re
from typing import List, Optional

from ..config import ConfiguratorPolicy
from ..data.normalize import canonical_socket
from ..data.reference import ReferenceData
from ..schemas import Build, Component

_LGA115X_FAMILY = ("LGA1150", "LGA1151", "LGA1155", "LGA1156")
_AMD_DDR5_MODELS = ("7950", "7900", "7800", "7700", "7600", "9950", "9900", "9800", "9700", "9600")
_INTEL_DDR5_NAME_RE = re.compile(r"core.*[ui][359].*1[3-5]\d{3}")


def cpu_fits_board(cpu: Component, board: Component) -> bool:
    """CPU 插槽（无插槽时用芯片组）与主板插槽或芯片组互为子串即视为兼容。"""
    token = cpu.socket or cpu.chipset
    if not token:
        return False
    for field in (board.socket, board.chipset):
        if field and (token in field or field in token):
            return True
    return False


def ram_fits_board(ram: Component, board: Component) -> bool:
    return any(mt in board.memory_types for mt in ram.memory_types)


def cooler_socket_tokens(value: str) -> List[str]:
    """
    散热器插槽规范化

    'sTRX4' -> ['TR4'], 'LGA115x' -> ['LGA1150', 'LGA1151', 'LGA1155', 'LGA1156']
    """
    token = canonical_socket(value).replace("STRX", "TR").replace("STR", "TR")
    if token == "LGA115X":
        return list(_LGA115X_FAMILY)
    return [token] if token else []


def cooler_fits_cpu(cooler: Component, cpu: Component) -> bool:
    cpu_tokens = cooler_socket_tokens(cpu.socket)
    if not cpu_tokens:
        return False
    supported = {t for s in cooler.cooler_sockets for t in cooler_socket_tokens(s)}
    return cpu_tokens[0] in supported


def case_fits_board(case: Component, board: Component) -> bool:
    """机箱板型须不小于主板板型：ITX ⊂ mATX ⊂ ATX ⊂ E-ATX。"""
    if board.form_factor is None:
        return True
    if case.form_factor is None:
        return False
    return case.form_factor.rank >= board.form_factor.rank


def is_ddr5_only_cpu(cpu: Component) -> bool:
    """LGA1851 / AM5 平台只支持 DDR5。"""
    socket = cpu.socket.lower()
    if "1851" in socket or "am5" in socket:
        return True
    name = cpu.name.lower()
    is_amd = "ryzen" in name or cpu.manufacturer.lower() == "amd"
    return is_amd and any(model in name for model in _AMD_DDR5_MODELS)


def is_ddr5_capable_cpu(cpu: Component) -> bool:
    socket = cpu.socket.lower()
    if any(s in socket for s in ("1700", "1851", "am5")):
        return True
    name = cpu.name.lower()
    if any(gen in name for gen in ("13th", "14th", "15th")):
        return True
    if _INTEL_DDR5_NAME_RE.search(name):
        return True
    return is_ddr5_only_cpu(cpu)


def estimate_cpu_tdp(cpu: Component) -> int:
    """无 TDP 时按核心数估算（缺核心数按 8 核处理）。"""
    if cpu.tdp > 0:
        return cpu.tdp
    cores = cpu.cores or 8
    if cores >= 20:
        return 253
    if cores >= 16:
        return 241
    if cores >= 12:
        return 180
    if cores >= 8:
        return 142
    if cores >= 6:
        return 125
    return 65


def estimate_gpu_tdp(gpu: Component, reference: ReferenceData, policy: ConfiguratorPolicy) -> int:
    if gpu.tdp > 0:
        return gpu.tdp
    return reference.gpu_tdp_for(gpu.name, policy.default_gpu_tdp)


def estimate_system_draw(
    build: Build,
    reference: ReferenceData,
    policy: ConfiguratorPolicy | None = None,
    drive_count: Optional[int] = None,
) -> int:
    """
    估算整机功耗 - Estimate System Draw

    基础 100W + CPU + GPU × 数量 + 内存 10W + 每块硬盘 5W（至少一块）+ 散热风扇 20W。
    Base 100 W + CPU + GPU × quantity + RAM 10 W + 5 W per drive (at least one)
    + cooler fans 20 W.
    """
    policy = policy or ConfiguratorPolicy()
    draw = policy.base_system_w + policy.ram_w + policy.cooler_w
    drives = len(build.storage) if drive_count is None else drive_count
    draw += policy.storage_drive_w * max(1, drives)
    if build.cpu:
        draw += estimate_cpu_tdp(build.cpu)
    if build.gpu:
        draw += estimate_gpu_tdp(build.gpu, reference, policy) * build.gpu_quantity
    return draw


def recommended_wattage(
    build: Build,
    reference: ReferenceData,
    policy: ConfiguratorPolicy | None = None,
    drive_count: Optional[int] = None,
) -> int:
    """ceil(1.25 × 估算功耗 / 50) × 50"""
    policy = policy or ConfiguratorPolicy()
    draw = estimate_system_draw(build, reference, policy, drive_count)
    step = policy.psu_rounding_w
    return int(math.ceil(draw * policy.psu_headroom / step) * step)


def relaxed_wattage_floor(recommended: int, policy: ConfiguratorPolicy) -> int:
    return int(math.floor(recommended * policy.psu_window_low))


def relaxed_wattage_ceiling(recommended: int, policy: ConfiguratorPolicy) -> int:
    return int(math.ceil(recommended * policy.psu_window_high))


def psu_fits_system(
    psu: Component,
    recommended: int,
    relaxed: bool = False,
    policy: ConfiguratorPolicy | None = None,
) -> bool:
    policy = policy or ConfiguratorPolicy()
    floor = relaxed_wattage_floor(recommended, policy) if relaxed else recommended
    return psu.wattage >= floor


def check_compatibility(
    build: Build,
    reference: ReferenceData,
    policy: ConfiguratorPolicy | None = None,
) -> List[str]:
    """检查硬件兼容性

    Args:
        build: 当前装机配置
        reference: GPU 参考数据（用于功耗估算）
        policy: 策略常量

    Returns:
        兼容性问题列表，空列表表示无问题
    """
    policy = policy or ConfiguratorPolicy()
    issues: List[str] = []
    cpu, board = build.cpu, build.motherboard

    # 1. CPU 与主板
    if cpu and board and not cpu_fits_board(cpu, board):
        issues.append(
            f"CPU socket {cpu.socket or cpu.chipset or '?'} does not match motherboard "
            f"{board.socket or board.chipset or '?'}"
        )

    # 2. 内存与主板
    if build.ram and board and not ram_fits_board(build.ram, board):
        ram_types = ", ".join(mt.value for mt in build.ram.memory_types) or "unknown"
        board_types = ", ".join(mt.value for mt in board.memory_types) or "unknown"
        issues.append(f"Memory type {ram_types} is not supported by motherboard ({board_types})")

    # 3. 机箱与主板板型
    if build.case and board and not case_fits_board(build.case, board):
        case_ff = build.case.form_factor.value if build.case.form_factor else "unknown"
        issues.append(f"{board.form_factor.value} motherboard does not fit {case_ff} case")

    # 4. 散热器与 CPU
    if build.cooler and cpu and not cooler_fits_cpu(build.cooler, cpu):
        issues.append(
            f"Cooler supports {', '.join(build.cooler.cooler_sockets) or 'no sockets'}, "
            f"CPU has {cpu.socket or 'unknown socket'}"
        )
    if cpu and build.cooler is None and not cpu.bundled_cooler:
        issues.append("CPU has no bundled cooler and no cooler was selected")

    # 5. 电源功率
    if build.psu:
        needed = recommended_wattage(build, reference, policy)
        if not psu_fits_system(build.psu, needed, build.psu_relaxed, policy):
            issues.append(f"PSU {build.psu.wattage}W is below the recommended {needed}W")

    return issues
