"""Mapping Template Registry — loads and validates saved column mappings.

Templates are YAML files in the mappings directory, so a spreadsheet layout
used every month can be synchronized without re-tagging its columns:

    name: plant_inventory
    description: Monthly plant equipment export
    column_mappings:
      Usine: {type: level, level: 0}
      Secteur: {type: level, level: 1}
      Type: {type: categorical}
      Notes: {type: ignore}

Files starting with "_" are examples: loadable by name, never listed.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel

from backend.core.config import settings
from backend.core.mapping_validator import validate_mapping
from backend.core.models import ColumnMapping, MappingConfig

logger = logging.getLogger(__name__)


class MappingTemplate(BaseModel):
    name: str
    description: Optional[str] = None
    column_mappings: dict[str, ColumnMapping] = {}

    def to_config(self) -> MappingConfig:
        return MappingConfig(column_mappings=self.column_mappings)


class MappingTemplateRegistry:
    """Registry that loads, validates, and caches mapping templates."""

    def __init__(self, mappings_dir: Optional[str] = None):
        self._templates: dict[str, MappingTemplate] = {}
        self._mappings_dir = Path(mappings_dir or settings.mappings_dir)
        if not self._mappings_dir.is_absolute():
            self._mappings_dir = settings.project_root / self._mappings_dir

    def _candidates(self) -> list[Path]:
        return list(self._mappings_dir.glob("*.yaml")) + list(self._mappings_dir.glob("*.yml"))

    def load_template_from_yaml(self, yaml_content: str) -> MappingTemplate:
        """Parse a mapping template from YAML text."""
        raw = yaml.safe_load(yaml_content)
        if not isinstance(raw, dict):
            raise ValueError("Mapping template YAML must be a mapping")
        if not raw.get("name"):
            raise ValueError("Mapping template must have a 'name'")
        return MappingTemplate(**raw)

    def validate_template(self, template: MappingTemplate) -> list[str]:
        """Validate a template's column mapping. Returns error messages (empty = valid)."""
        return validate_mapping(template.to_config()).errors

    def load_template(self, name: str) -> MappingTemplate:
        """Load a template from disk by its `name` field or file stem."""
        for path in self._candidates():
            try:
                content = path.read_text()
                raw = yaml.safe_load(content)
            except yaml.YAMLError:
                continue
            if not isinstance(raw, dict):
                continue
            if raw.get("name") == name or path.stem == name:
                template = self.load_template_from_yaml(content)
                errors = self.validate_template(template)
                if errors:
                    raise ValueError(f"Mapping template errors for {name}: {errors}")
                self._templates[template.name] = template
                logger.info(f"Loaded mapping template '{template.name}' from {path}")
                return template

        raise FileNotFoundError(
            f"No mapping template '{name}' found in {self._mappings_dir}"
        )

    def get_template(self, name: str) -> MappingTemplate:
        """Get a cached template or load it from disk."""
        if name not in self._templates:
            return self.load_template(name)
        return self._templates[name]

    def register_template(self, template: MappingTemplate) -> None:
        """Register a template directly (e.g. from the API)."""
        errors = self.validate_template(template)
        if errors:
            raise ValueError(f"Mapping template errors: {errors}")
        self._templates[template.name] = template

    def list_templates(self) -> list[str]:
        """List all template names, registered ones first."""
        names = list(self._templates.keys())
        for path in self._candidates():
            if path.name.startswith("_"):
                continue
            try:
                raw = yaml.safe_load(path.read_text())
            except yaml.YAMLError:
                continue
            if isinstance(raw, dict) and raw.get("name") and raw["name"] not in names:
                names.append(raw["name"])
        return names
