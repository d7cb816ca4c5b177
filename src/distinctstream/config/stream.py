from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from pydantic import BaseModel, Field, field_validator

from distinctstream.pipeline.utils.transform_utils import transform_stream
from distinctstream.utils.load import load_yaml


class StreamConfig(BaseModel):
    """Transform chain for one stream, usually loaded from YAML.

    Example::

        transforms:
          - distinct_until_changed:
              key_selector: mypkg.keys:by_id
              strict: true
    """

    transforms: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("transforms", mode="before")
    @classmethod
    def _validate_clauses(cls, value):
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            raise ValueError("transforms must be a list of one-key mappings")
        for clause in value:
            if not isinstance(clause, Mapping) or len(clause) != 1:
                raise ValueError(f"Transform must be one-key mapping, got: {clause!r}")
        return [dict(clause) for clause in value]

    @classmethod
    def from_yaml(cls, path: Path) -> "StreamConfig":
        return cls.model_validate(load_yaml(Path(path)))

    def apply(self, stream: Iterable[Any]) -> Iterator[Any]:
        return transform_stream(stream, self.transforms)
