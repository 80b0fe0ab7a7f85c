"""Serialization for configs, projection rows, and summaries."""

from __future__ import annotations

import csv
import dataclasses
import hashlib
import io
import json
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from retireplan.config.schema import HouseholdProfile, TaxScenarioInputs
from retireplan.utils.exceptions import ConfigError, InvalidInputs

if TYPE_CHECKING:
    from retireplan.analytics.summary import ProjectionSummary
    from retireplan.core.results import ProjectionResult


def _config_data(
    profile: HouseholdProfile,
    scenario: TaxScenarioInputs,
    as_of_year: int,
) -> dict[str, Any]:
    return {
        "profile": profile.model_dump(mode="json"),
        "scenario": scenario.model_dump(mode="json"),
        "as_of_year": as_of_year,
    }


def compute_config_hash(
    profile: HouseholdProfile,
    scenario: TaxScenarioInputs,
    as_of_year: int,
) -> str:
    """Compute a deterministic SHA-256 hash of a projection's inputs.

    Uses canonical JSON (sorted keys, no whitespace) so the same
    logical config always produces the same hash.
    """
    canonical = json.dumps(
        _config_data(profile, scenario, as_of_year), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(canonical.encode()).hexdigest()


def dump_config(
    profile: HouseholdProfile,
    scenario: TaxScenarioInputs,
    as_of_year: int,
) -> str:
    """Serialize a projection's inputs to a JSON string."""
    return json.dumps(_config_data(profile, scenario, as_of_year), indent=2)


def load_config(json_str: str) -> tuple[HouseholdProfile, TaxScenarioInputs, int]:
    """Deserialize a projection's inputs from a JSON string.

    Raises:
        ConfigError: If the text is not a JSON object.
        InvalidInputs: If a section is missing or fails validation.
    """
    try:
        data: dict[str, Any] = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"config is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("config must be a JSON object")
    try:
        profile = HouseholdProfile.model_validate(data["profile"])
        scenario = TaxScenarioInputs.model_validate(data.get("scenario", {}))
        as_of_year = int(data["as_of_year"])
    except KeyError as exc:
        raise InvalidInputs(f"config is missing {exc}") from exc
    except ValidationError as exc:
        raise InvalidInputs(str(exc)) from exc
    return profile, scenario, as_of_year


def dump_rows_csv(result: ProjectionResult) -> str:
    """Export the yearly rows as CSV, one line per projected year."""
    if not result.rows:
        return ""
    output = io.StringIO()
    fieldnames = list(result.rows[0].to_dict())
    writer = csv.DictWriter(output, fieldnames=fieldnames)
    writer.writeheader()
    for row in result.rows:
        writer.writerow(row.to_dict())
    return output.getvalue()


def dump_summary_json(summary: ProjectionSummary) -> str:
    """Serialize a projection summary to JSON."""
    return json.dumps(dataclasses.asdict(summary), indent=2)
