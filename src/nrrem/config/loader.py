"""
YAML scenario file loader with validation.

Loads scenario.yaml files and validates them against the Pydantic schema.
"""

from pathlib import Path
from typing import Union

import yaml
from pydantic import ValidationError

from nrrem.config.schema import ScenarioConfig


class ScenarioLoadError(Exception):
    """Error loading or parsing scenario file."""

    pass


def format_validation_error(error: ValidationError) -> str:
    """Render pydantic errors as one indented line per location."""
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        lines.append(f"  {loc}: {item['msg']}")
    return "\n".join(lines)


def parse_scenario(raw_data: object) -> ScenarioConfig:
    """
    Validate already-parsed scenario data.

    Raises:
        ScenarioLoadError: If the data is not a mapping or validation fails
    """
    if not isinstance(raw_data, dict):
        raise ScenarioLoadError("Scenario file must contain a YAML mapping")
    try:
        return ScenarioConfig.model_validate(raw_data)
    except ValidationError as e:
        raise ScenarioLoadError(
            f"Scenario validation failed:\n{format_validation_error(e)}"
        ) from e


class ScenarioLoader:
    """Load and validate a REM scenario from YAML files."""

    def __init__(self, scenario_path: Union[str, Path]):
        """
        Initialize loader with path to scenario file.

        Args:
            scenario_path: Path to scenario.yaml file
        """
        self.scenario_path = Path(scenario_path)
        if not self.scenario_path.exists():
            raise ScenarioLoadError(f"Scenario file not found: {scenario_path}")
        if not self.scenario_path.is_file():
            raise ScenarioLoadError(f"Not a file: {scenario_path}")

    def load(self) -> ScenarioConfig:
        """
        Load and validate scenario from YAML file.

        Returns:
            Validated ScenarioConfig object

        Raises:
            ScenarioLoadError: If file cannot be parsed or validation fails
        """
        try:
            with open(self.scenario_path) as f:
                raw_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ScenarioLoadError(f"YAML parse error: {e}") from e

        return parse_scenario(raw_data)


def load_scenario(path: Union[str, Path]) -> ScenarioConfig:
    """
    Convenience function to load scenario from file.

    Args:
        path: Path to scenario.yaml file

    Returns:
        Validated ScenarioConfig object
    """
    loader = ScenarioLoader(path)
    return loader.load()
