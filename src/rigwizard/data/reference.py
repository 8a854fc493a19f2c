"""
参考数据 - Reference Data

GPU 基准分与 TDP 表作为带版本的注入数据，而非内联常量。
GPU benchmark and TDP tables are versioned, injected data rather than inline
literals, so tests can substitute fixed fixtures.
"""

from __future__ import annotations

import json
import re
from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

_RTX_RE = re.compile(r"RTX[^\d]*(\d{4})[^\w]*(TI)?[^\w]*(SUPER)?", re.IGNORECASE)
_GTX_RE = re.compile(r"GTX[^\d]*(\d{4})[^\w]*(TI)?", re.IGNORECASE)
_RX_RE = re.compile(r"RX[^\d]*(\d{4})[^\w]*(XTX|XT)?", re.IGNORECASE)
_ARC_RE = re.compile(r"ARC[^\w]*([A-Z]\d{3})", re.IGNORECASE)


def extract_gpu_model(name: str) -> str:
    """'ASUS TUF RTX 4070 Ti SUPER OC' -> 'RTX 4070 Ti Super'"""
    if not name:
        return "Unknown"
    upper = name.upper()
    match = _RTX_RE.search(upper)
    if match:
        ti = " Ti" if match.group(2) else ""
        sup = " Super" if match.group(3) else ""
        return f"RTX {match.group(1)}{ti}{sup}"
    match = _GTX_RE.search(upper)
    if match:
        ti = " Ti" if match.group(2) else ""
        return f"GTX {match.group(1)}{ti}"
    match = _RX_RE.search(upper)
    if match:
        xt = f" {match.group(2)}" if match.group(2) else ""
        return f"RX {match.group(1)}{xt}"
    match = _ARC_RE.search(upper)
    if match:
        return f"Arc {match.group(1)}"
    return "Unknown"


class ReferenceData(BaseModel):
    version: str = "unversioned"
    gpu_benchmarks: Dict[str, float] = Field(default_factory=dict)
    gpu_tdp: Dict[str, int] = Field(default_factory=dict)

    def _models_longest_first(self) -> List[Tuple[str, float]]:
        # "RX 7900 XTX" must be tried before "RX 7900"
        return sorted(self.gpu_benchmarks.items(), key=lambda kv: (-len(kv[0]), kv[0]))

    def max_benchmark(self) -> float:
        return max(self.gpu_benchmarks.values(), default=0.0)

    def gpu_score(self, name: str) -> Optional[float]:
        """归一化基准分，未知型号返回 None。"""
        top = self.max_benchmark()
        if not name or top <= 0:
            return None
        lowered = name.lower()
        for model, score in self._models_longest_first():
            if model.lower() in lowered:
                return score / top
        return None

    def gpu_tdp_for(self, name: str, default: int) -> int:
        return self.gpu_tdp.get(extract_gpu_model(name), default)


def load_reference_data(path: Path | None = None) -> ReferenceData:
    if path is not None:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    else:
        source = resources.files("rigwizard.data").joinpath("tables/reference_data.json")
        raw = json.loads(source.read_text(encoding="utf-8"))
    return ReferenceData.model_validate(raw)
