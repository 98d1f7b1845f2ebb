"""
Serialization module for FinSim plans and results.

Purpose
-------
Reads and writes plan files and renders results as JSON. Simulation results
are never persisted by the library itself; `result_to_json` exists so that
callers (the CLI's --json flag, or a service layer) can hand results on.

Plan file format
----------------
{
    "schema_version": "0.1.0",
    "product": "retirement" | "defined_contribution",
    "inputs": { ...fields of RetirementInputs / DefinedContributionInputs... }
}

Design Principles
-----------------
- Type-safe: inputs are validated by the product's Pydantic model
- Human-readable: plain JSON, rates as fractions
- Backward compatible: schema versions are checked on load

Example
-------
>>> from pathlib import Path
>>> from finsim.serialization import load_plan, save_plan
>>> save_plan(AdapterKind.RETIREMENT, inputs, Path("plan.json"))
>>> kind, loaded = load_plan(Path("plan.json"))
>>> kind
<AdapterKind.RETIREMENT: 'retirement'>
"""

from __future__ import annotations
from typing import Any, Dict, Tuple, Union
from pathlib import Path
import json

import numpy as np
import pydantic

from .adapters import AdapterKind, adapter_for
from .aggregation import AggregateResult
from .config import BaseSimulationInputs
from .constants import SCHEMA_VERSION
from .exceptions import ValidationError

__all__ = [
    "plan_to_dict",
    "plan_from_dict",
    "save_plan",
    "load_plan",
    "result_to_json",
]


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

def plan_to_dict(kind: Union[AdapterKind, str], inputs: BaseSimulationInputs) -> Dict[str, Any]:
    """Build the plan file payload for a product and its inputs."""
    return {
        "schema_version": SCHEMA_VERSION,
        "product": AdapterKind(kind).value,
        "inputs": inputs.model_dump(mode="json", exclude_none=True),
    }


def plan_from_dict(data: Dict[str, Any]) -> Tuple[AdapterKind, BaseSimulationInputs]:
    """
    Parse a plan payload.

    Raises
    ------
    ValidationError
        If the schema version is unsupported, a key is missing, or the
        inputs fail the product model's validation.
    UnknownAdapterKind
        If `product` names no known product.
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Plan must be a JSON object, got {type(data).__name__}")

    version = data.get("schema_version", SCHEMA_VERSION)
    if version != SCHEMA_VERSION:
        raise ValidationError(
            f"Unsupported schema_version '{version}' (expected '{SCHEMA_VERSION}')"
        )
    for key in ("product", "inputs"):
        if key not in data:
            raise ValidationError(f"Plan is missing required key '{key}'")

    adapter = adapter_for(data["product"])
    try:
        inputs = adapter.parse_inputs(data["inputs"])
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid {adapter.kind.value} inputs:\n{exc}") from exc
    return adapter.kind, inputs


def save_plan(kind: Union[AdapterKind, str], inputs: BaseSimulationInputs, path: Path) -> None:
    """Write a plan file (JSON, indented)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(plan_to_dict(kind, inputs), f, indent=2)


def load_plan(path: Path) -> Tuple[AdapterKind, BaseSimulationInputs]:
    """
    Load and validate a plan file.

    Parameters
    ----------
    path : Path
        JSON plan file.

    Returns
    -------
    (AdapterKind, BaseSimulationInputs)
        The product tag and its typed inputs.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValidationError
        If the file is not valid JSON or fails validation.
    UnknownAdapterKind
        If the product is not recognised.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Plan file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Plan file {path} is not valid JSON: {exc}") from exc

    return plan_from_dict(data)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

def _json_default(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def result_to_json(result: AggregateResult, indent: int = 2) -> str:
    """Render any AggregateResult (including product subclasses) as JSON."""
    return json.dumps(result.to_dict(), indent=indent, default=_json_default)
