from __future__ import annotations

from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from distinctstream.utils.load import load_callable

Comparator = Callable[[Any, Any], bool]
KeySelector = Callable[[Any], Any]


class CopyOptions(BaseModel):
    """Options accepted by :func:`distinctstream.utils.copy.deep_copy`."""

    model_config = ConfigDict(frozen=True)

    is_strict: bool = Field(
        default=False,
        description="Also copy instance attributes of container subclasses and skip call artifacts.",
    )


class DistinctConfig(BaseModel):
    """Construction parameters of the distinct-until-changed filter.

    ``compare`` and ``key_selector`` accept callables or ``module:attr``
    import specs, so the filter can be configured from YAML.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="forbid")

    compare: Optional[Union[Callable[..., Any], str]] = Field(
        default=None,
        description="compare(previous_key, next_key) -> bool; truthy marks a duplicate.",
    )
    key_selector: Optional[Union[Callable[..., Any], str]] = Field(
        default=None,
        description="key_selector(value) -> key used for comparison.",
    )
    strict: bool = Field(default=False, description="Snapshot keys with the strict copy strategy.")

    @field_validator("compare", "key_selector", mode="before")
    @classmethod
    def _resolve_callable(cls, value):
        if value is None:
            return None
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            try:
                return load_callable(text)
            except (ImportError, TypeError) as exc:
                raise ValueError(str(exc)) from exc
        if not callable(value):
            raise ValueError(f"expected a callable or 'module:attr' string, got {type(value).__name__}")
        return value

    @property
    def copy_options(self) -> CopyOptions:
        return CopyOptions(is_strict=self.strict)

    def build_transform(self):
        from distinctstream.transforms.stream.distinct import DistinctUntilChangedTransform

        return DistinctUntilChangedTransform(
            compare=self.compare,
            key_selector=self.key_selector,
            strict=self.strict,
        )

    def build_operator(self):
        from distinctstream.streams.operators import distinct_until_changed_immutable

        return distinct_until_changed_immutable(
            self.compare,
            self.key_selector,
            strict=self.strict,
        )
