"""Variable Builder — measurement variables for energy-tagged assets.

Each energy type has a set of variable templates (power, flow, pressure,
...). Every asset in an energy map gets one variable per template of its
type, named after the asset and published under an adapter topic:

    Pump1 (electricity), adapter "opcua" -> Pump1_Power  /opcua/<assetId>/power

Variables are created in chunks. The service accepts or rejects a chunk
as a whole, so a failed chunk fails all of its variables and the next
chunk is still sent.
"""

import logging
import re
from typing import Callable, Iterable, Optional

from backend.core import asset_ops
from backend.core.asset_ops import AssetServiceError
from backend.core.bulk_sync import chunked
from backend.core.config import settings
from backend.core.energy_propagation import normalize_energy_type
from backend.core.models import (
    CreatedAsset,
    EnergyType,
    ErrorKey,
    Variable,
    VariableDataType,
    VariableError,
    VariableSyncResult,
    VariableTemplate,
)

logger = logging.getLogger(__name__)

CreateVariablesFn = Callable[[list[Variable]], None]

_NON_WORD = re.compile(r"[^\w\s]", re.ASCII)
_WHITESPACE = re.compile(r"\s+")


def _templates(energy_type: EnergyType, *specs: tuple) -> list[VariableTemplate]:
    return [
        VariableTemplate(
            name_suffix=name_suffix,
            topic_suffix=topic_suffix,
            data_type=data_type,
            units=units,
            description=description,
            apply_to_energy_types=[energy_type],
        )
        for name_suffix, topic_suffix, data_type, units, description in specs
    ]


_D = VariableDataType.DOUBLE

DEFAULT_VARIABLE_TEMPLATES: dict[str, list[VariableTemplate]] = {
    EnergyType.ELECTRICITY.value: _templates(
        EnergyType.ELECTRICITY,
        ("Power", "power", _D, "kW", "Electricity power consumption"),
        ("Energy", "energy", _D, "kWh", "Electricity energy consumption"),
        ("Voltage", "voltage", _D, "V", "Electricity voltage level"),
        ("State", "state", VariableDataType.BOOLEAN, None, "On/Off state"),
    ),
    EnergyType.GAS.value: _templates(
        EnergyType.GAS,
        ("Flow", "flow", _D, "m³/h", "Gas flow rate"),
        ("Volume", "volume", _D, "m³", "Gas volume consumption"),
        ("Pressure", "pressure", _D, "bar", "Gas pressure"),
    ),
    EnergyType.WATER.value: _templates(
        EnergyType.WATER,
        ("Flow", "flow", _D, "m³/h", "Water flow rate"),
        ("Volume", "volume", _D, "m³", "Water volume consumption"),
        ("Temperature", "temperature", _D, "°C", "Water temperature"),
        ("Pressure", "pressure", _D, "bar", "Water pressure"),
    ),
    EnergyType.THERMAL.value: _templates(
        EnergyType.THERMAL,
        ("Power", "power", _D, "kW", "Thermal power"),
        ("Energy", "energy", _D, "kWh", "Thermal energy consumption"),
        ("Flow Temperature", "flow_temperature", _D, "°C", "Thermal flow temperature"),
        ("Return Temperature", "return_temperature", _D, "°C", "Thermal return temperature"),
    ),
}


def format_variable_name(asset_name: str, suffix: str) -> str:
    """Asset name plus suffix, e.g. ("Pump #1", "Power") -> "Pump_1_Power"."""
    sanitized = _WHITESPACE.sub("_", _NON_WORD.sub("", asset_name))
    return f"{sanitized}_{suffix}"


def format_topic_path(asset_id: str, adapter_id: str, suffix: str) -> str:
    return f"/{adapter_id}/{asset_id}/{suffix}"


def build_variables(
    assets: Iterable[CreatedAsset],
    energy_map: dict[str, str],
    adapter_id: str,
    templates: Optional[dict[str, list[VariableTemplate]]] = None,
) -> list[Variable]:
    """One variable per (tagged asset, matching template), in energy map order.

    Energy values are normalized first, so "Elec" and "electricity" pick the
    same templates. Assets missing from `assets` are skipped.
    """
    templates = templates if templates is not None else DEFAULT_VARIABLE_TEMPLATES
    by_id = {a.asset_id: a for a in assets}
    variables: list[Variable] = []

    for asset_id, raw_type in energy_map.items():
        asset = by_id.get(asset_id)
        if asset is None:
            logger.debug(f"Energy map entry {asset_id} has no matching asset, skipped")
            continue
        energy_type = normalize_energy_type(raw_type)
        for template in templates.get(energy_type, []):
            if energy_type not in template.apply_to_energy_types:
                continue
            variables.append(Variable(
                name=format_variable_name(asset.name, template.name_suffix),
                topic=format_topic_path(asset_id, adapter_id, template.topic_suffix),
                data_type=template.data_type,
                description=template.description,
                units=template.units,
                asset_id=asset_id,
            ))

    return variables


def _fail_variables(chunk: list[Variable], error_key: str, reason: str) -> list[VariableError]:
    return [
        VariableError(
            error_key=error_key,
            message=f"Failed to create variable \"{v.name}\": {reason}",
            variable_name=v.name,
            asset_id=v.asset_id,
        )
        for v in chunk
    ]


def create_variables(
    variables: list[Variable],
    chunk_size: Optional[int] = None,
    create_fn: Optional[CreateVariablesFn] = None,
) -> VariableSyncResult:
    """Create variables chunk by chunk; a failed chunk never stops the next one."""
    size = chunk_size or settings.chunk_size
    create = create_fn or asset_ops.bulk_create_variables
    result = VariableSyncResult()
    if not variables:
        return result

    chunks = list(chunked(variables, size))
    for chunk_no, chunk in enumerate(chunks, start=1):
        label = f"Variables chunk {chunk_no}/{len(chunks)}"
        try:
            create(chunk)
        except AssetServiceError as e:
            logger.error(f"{label}: bulk create failed: {e}")
            result.failures.extend(_fail_variables(
                chunk, e.error_key or ErrorKey.NETWORK_OR_SERVER_ERROR.value, e.message,
            ))
            continue
        except Exception as e:
            logger.error(f"{label}: unexpected error during bulk create: {e}", exc_info=True)
            result.failures.extend(_fail_variables(
                chunk, ErrorKey.CHUNK_PROCESSING_ERROR.value, str(e),
            ))
            continue
        result.created += len(chunk)
        logger.info(f"{label}: {len(chunk)} variables created ({result.created}/{len(variables)})")

    return result
