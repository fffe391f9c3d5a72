"""
Declaration Loader Module

Responsibility:
- Parse YAML stack declarations into ResourceSpec objects
- Enforce the document schema with pydantic before graph building
- Preserve document order (it is the planner's tie-break order)

Document shape:

    resources:
      - name: network
        provisioner: aws.cloudfront
        inputs:
          origin_bucket: storage.bucket_arn
        outputs: [cf_arn, cf_domain]
        config:
          price_class: PriceClass_100
"""

from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from stackplan.errors import DeclarationError
from stackplan.models import ResourceSpec


class ResourceDeclaration(BaseModel):
    name: str
    provisioner: str = ""
    inputs: Dict[str, str] = Field(default_factory=dict)
    outputs: List[str] = Field(default_factory=list)
    config: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("resource name must not be empty")
        if "." in value:
            raise ValueError(f"resource name '{value}' must not contain '.'")
        return value

    def to_spec(self) -> ResourceSpec:
        return ResourceSpec(
            name=self.name,
            provisioner=self.provisioner,
            inputs=dict(self.inputs),
            outputs=tuple(self.outputs),
            config=dict(self.config),
        )


class StackDeclaration(BaseModel):
    resources: List[ResourceDeclaration] = Field(default_factory=list)

    def to_specs(self) -> List[ResourceSpec]:
        return [resource.to_spec() for resource in self.resources]


def parse_declarations(data: Any) -> List[ResourceSpec]:
    """Validate already-decoded data (e.g. a JSON request body)."""
    if not isinstance(data, dict):
        raise DeclarationError("Declaration document must be a mapping with a 'resources' list")
    try:
        return StackDeclaration.model_validate(data).to_specs()
    except ValidationError as e:
        raise DeclarationError(f"Invalid declaration document:\n{e}") from e


def load_declarations(text: str) -> List[ResourceSpec]:
    """Parse a YAML declaration document."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DeclarationError(f"Declaration document is not valid YAML: {e}") from e
    return parse_declarations(data)


def load_declarations_file(path) -> List[ResourceSpec]:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DeclarationError(f"Cannot read declaration file '{path}': {e}") from e
    return load_declarations(text)
