"""Strict configuration namespace helper for `pipelinekit` consumers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable

_MISSING = object()


@dataclass
class ConfigNamespace:
    """Path-aware view over one mapping of a parsed config.

    Every accessor marks its key as consumed; `assert_consumed` (or
    `unconsumed_paths`) then reports anything in the mapping nobody asked for.
    """

    data: Mapping[str, Any]
    path: str
    _consumed: set[str] = field(default_factory=set, init=False, repr=False)
    _children: dict[str, "ConfigNamespace"] = field(default_factory=dict, init=False, repr=False)

    def child_path(self, key: str) -> str:
        return f"{self.path}.{key}" if self.path else key

    def consumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(self._consumed))

    def unconsumed_keys(self) -> tuple[str, ...]:
        return tuple(sorted(str(key) for key in self.data if key not in self._consumed))

    def unconsumed_paths(self) -> list[str]:
        paths = [self.child_path(key) for key in self.unconsumed_keys()]
        for child in self._children.values():
            paths.extend(child.unconsumed_paths())
        return paths

    def assert_consumed(self) -> None:
        unknown = self.unconsumed_keys()
        if unknown:
            raise ValueError(
                f"Unknown config keys under {self.path or '<root>'}: {', '.join(unknown)} "
                f"(consumed: {', '.join(self.consumed_keys()) or '<none>'})"
            )
        for child in self._children.values():
            child.assert_consumed()

    def _normalize_key(self, key: Any) -> str:
        if not isinstance(key, str) or not key.strip():
            raise TypeError("ConfigNamespace key must be a non-empty string")
        return key.strip()

    def _take(self, key: str, default: Any) -> Any:
        if key in self._children:
            raise ValueError(f"{self.child_path(key)} already accessed as a nested namespace")
        self._consumed.add(key)
        if key in self.data:
            return self.data[key]
        if default is _MISSING:
            raise ValueError(f"Missing required config key: {self.child_path(key)}")
        return default

    def _wrong_type(self, key: str, expected: str, raw: Any) -> TypeError:
        return TypeError(f"{self.child_path(key)} must be {expected} (type={type(raw).__name__})")

    def namespace(self, key: str, *, required: bool = False) -> "ConfigNamespace":
        """Nested mapping at `key`; absent or null yields an empty namespace unless required."""

        key = self._normalize_key(key)
        if key in self._children:
            return self._children[key]

        self._consumed.add(key)
        raw = self.data.get(key)
        if raw is None:
            if required:
                raise ValueError(f"Missing required config namespace: {self.child_path(key)}")
            raw = {}
        if not isinstance(raw, Mapping):
            raise self._wrong_type(key, "a mapping", raw)

        child = ConfigNamespace(dict(raw), path=self.child_path(key))
        self._children[key] = child
        return child

    def get_bool(self, key: str, *, default: bool | object = _MISSING) -> bool:
        key = self._normalize_key(key)
        raw = self._take(key, default)
        if isinstance(raw, str) and raw.strip().lower() in ("true", "false"):
            return raw.strip().lower() == "true"
        if not isinstance(raw, bool):
            raise self._wrong_type(key, "a boolean", raw)
        return raw

    def get_int(
        self,
        key: str,
        *,
        default: int | object = _MISSING,
        min_value: int | None = None,
        max_value: int | None = None,
    ) -> int:
        key = self._normalize_key(key)
        raw = self._take(key, default)
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise self._wrong_type(key, "an int", raw)
        if min_value is not None and raw < min_value:
            raise ValueError(f"{self.child_path(key)} must be >= {min_value} (got {raw})")
        if max_value is not None and raw > max_value:
            raise ValueError(f"{self.child_path(key)} must be <= {max_value} (got {raw})")
        return raw

    def get_str(
        self,
        key: str,
        *,
        default: str | None | object = _MISSING,
        allow_empty: bool = False,
        choices: Iterable[str] | None = None,
    ) -> str | None:
        key = self._normalize_key(key)
        raw = self._take(key, default)
        if raw is None:
            return None
        # YAML turns bare numbers (account ids, ports) into ints.
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            raw = str(raw)
        if not isinstance(raw, str):
            raise self._wrong_type(key, "a string", raw)

        value = raw.strip()
        if not value and not allow_empty:
            raise ValueError(f"{self.child_path(key)} cannot be empty")
        if choices is not None:
            allowed = sorted({str(choice).strip() for choice in choices if str(choice).strip()})
            if value not in allowed:
                raise ValueError(
                    f"{self.child_path(key)} must be one of: {', '.join(allowed) or '<none>'} (got {value!r})"
                )
        return value

    def get_list_str(
        self,
        key: str,
        *,
        default: list[str] | tuple[str, ...] | object = _MISSING,
        allow_empty: bool = False,
    ) -> list[str]:
        """List of non-empty strings; a comma-separated string is split."""

        key = self._normalize_key(key)
        raw = self._take(key, default)
        if isinstance(raw, str):
            raw = raw.split(",")
        if not isinstance(raw, (list, tuple)):
            raise self._wrong_type(key, "a list[str]", raw)

        items: list[str] = []
        for idx, item in enumerate(raw):
            if not isinstance(item, str):
                raise TypeError(
                    f"{self.child_path(key)}[{idx}] must be a string (type={type(item).__name__})"
                )
            if not item.strip():
                raise ValueError(f"{self.child_path(key)}[{idx}] cannot be empty")
            items.append(item.strip())

        if not items and not allow_empty:
            raise ValueError(f"{self.child_path(key)} cannot be empty")
        return items

    def get_list_mapping(self, key: str, *, default: Any = _MISSING) -> list["ConfigNamespace"]:
        """One child namespace per item of a list of mappings (paths like `key[0]`)."""

        key = self._normalize_key(key)
        raw = self._take(key, default)
        if raw is None:
            return []
        if not isinstance(raw, (list, tuple)):
            raise self._wrong_type(key, "a list", raw)

        children: list[ConfigNamespace] = []
        for idx, item in enumerate(raw):
            item_key = f"{key}[{idx}]"
            if not isinstance(item, Mapping):
                raise TypeError(
                    f"{self.child_path(item_key)} must be a mapping (type={type(item).__name__})"
                )
            child = ConfigNamespace(dict(item), path=self.child_path(item_key))
            self._children[item_key] = child
            children.append(child)
        return children
