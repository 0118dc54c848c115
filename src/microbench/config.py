"""Benchmark definitions and suite file loading.

A suite file is YAML::

    name: strings
    options:
      max_time: 2
    benchmarks:
      - name: join
        source: benches.py        # resolved relative to the suite file
        test: join_words
        setup: make_words
      - name: format
        test: mypkg.benches:format_words
"""

from __future__ import annotations

import dataclasses
import importlib
import importlib.util
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any

import yaml

from microbench.errors import SuiteConfigError

DEFAULT_MAX_TIME = 5.0
DEFAULT_MIN_SAMPLES = 5
DEFAULT_INITIAL_COUNT = 1
DEFAULT_DELAY = 0.005

OPTION_KEYS = (
    "min_time",
    "max_time",
    "min_samples",
    "initial_count",
    "delay",
    "defer",
    "async",
)


@dataclass(frozen=True)
class BenchmarkSpec:
    """A benchmark as supplied by the caller.

    Attributes:
        name: Benchmark identifier.
        test: Callable to measure. Takes no arguments, or a ``Deferred``
            handle when ``defer`` is set.
        setup: Called once before each timed cycle.
        teardown: Called once after each timed cycle.
        min_time: Minimum duration of a timed cycle (seconds); 0 derives it
            from the clock resolution.
        max_time: Sampling budget (seconds), checked between samples.
        min_samples: Samples required before sampling may stop.
        initial_count: Invocations in the first cycle.
        delay: Pause between cycles when running asynchronously (seconds).
        defer: Whether ``test`` signals completion through a Deferred handle.
        async_: Default to yielding between cycles when run by a suite.
    """

    name: str
    test: Callable[..., Any]
    setup: Callable[[], Any] | None = None
    teardown: Callable[[], Any] | None = None
    min_time: float = 0.0
    max_time: float = DEFAULT_MAX_TIME
    min_samples: int = DEFAULT_MIN_SAMPLES
    initial_count: int = DEFAULT_INITIAL_COUNT
    delay: float = DEFAULT_DELAY
    defer: bool = False
    async_: bool = False

    def __post_init__(self) -> None:
        if not callable(self.test):
            raise TypeError(f"test for {self.name!r} is not callable")
        if self.min_time < 0 or self.max_time < 0 or self.delay < 0:
            raise ValueError(f"negative time option for {self.name!r}")
        if self.min_samples < 1:
            raise ValueError(f"min_samples must be >= 1 for {self.name!r}")
        if self.initial_count < 1:
            raise ValueError(f"initial_count must be >= 1 for {self.name!r}")

    def with_options(self, **options: Any) -> BenchmarkSpec:
        """Copy of this spec with the given fields replaced."""
        return dataclasses.replace(self, **options)


@dataclass
class SuiteConfig:
    """Parsed suite file.

    Attributes:
        name: Suite name.
        benchmarks: Enabled benchmarks, in file order.
        path: The suite file.
        options: Suite-wide option overrides from the file.
    """

    name: str
    benchmarks: list[BenchmarkSpec]
    path: Path
    options: dict[str, Any] = field(default_factory=dict)


def normalize_options(raw: dict[str, Any] | None, where: str) -> dict[str, Any]:
    """Validate option keys and map them onto BenchmarkSpec field names."""
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise SuiteConfigError(f"{where}: options must be a mapping")

    options: dict[str, Any] = {}
    for key, value in raw.items():
        if key not in OPTION_KEYS:
            raise SuiteConfigError(f"{where}: unknown option {key!r}")
        if value is None:
            continue
        if key == "async":
            options["async_"] = bool(value)
        elif key == "defer":
            options["defer"] = bool(value)
        elif key in ("min_samples", "initial_count"):
            options[key] = int(value)
        else:
            options[key] = float(value)
    return options


def _load_module(source: str, base_path: Path, cache: dict[str, ModuleType]) -> ModuleType:
    if source.endswith(".py"):
        path = (base_path / source).resolve()
        key = str(path)
        if key not in cache:
            if not path.exists():
                raise SuiteConfigError(f"benchmark source not found: {path}")
            module_name = f"_microbench_suite_{path.stem}_{len(cache)}"
            spec = importlib.util.spec_from_file_location(module_name, path)
            if spec is None or spec.loader is None:
                raise SuiteConfigError(f"cannot load benchmark source: {path}")
            module = importlib.util.module_from_spec(spec)
            try:
                spec.loader.exec_module(module)
            except Exception as e:
                raise SuiteConfigError(f"error importing {path}: {e}") from e
            cache[key] = module
        return cache[key]

    if source not in cache:
        try:
            cache[source] = importlib.import_module(source)
        except ImportError as e:
            raise SuiteConfigError(f"cannot import {source!r}: {e}") from e
    return cache[source]


def resolve_callable(
    ref: str,
    base_path: Path,
    default_source: str | None = None,
    cache: dict[str, ModuleType] | None = None,
) -> Callable[..., Any]:
    """Resolve ``"module:attr"``, ``"file.py:attr"`` or a bare attribute name.

    Args:
        ref: Callable reference.
        base_path: Directory that relative ``.py`` sources are resolved against.
        default_source: Module or file used for bare attribute names.
        cache: Loaded modules, shared across lookups.

    Returns:
        The referenced callable.
    """
    if cache is None:
        cache = {}

    if ":" in ref:
        source, attr = ref.rsplit(":", 1)
    elif default_source:
        source, attr = default_source, ref
    else:
        raise SuiteConfigError(f"callable {ref!r} needs a 'module:name' form or a source")

    module = _load_module(source, base_path, cache)
    target: Any = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise SuiteConfigError(f"{source!r} has no attribute {attr!r}") from e

    if not callable(target):
        raise SuiteConfigError(f"{ref!r} is not callable")
    return target


def load_suite_config(config_path: Path | str) -> SuiteConfig:
    """Load a benchmark suite from YAML.

    Args:
        config_path: Path to the suite file.

    Returns:
        SuiteConfig with resolved benchmarks.

    Raises:
        SuiteConfigError: If the file is unreadable, malformed, or refers to
            callables that cannot be imported.
    """
    config_path = Path(config_path)
    try:
        with config_path.open() as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise SuiteConfigError(f"cannot read {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise SuiteConfigError(f"invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise SuiteConfigError(f"{config_path}: expected a mapping at top level")

    base_path = config_path.parent
    suite_options = normalize_options(data.get("options"), str(config_path))
    suite_source = data.get("source")
    cache: dict[str, ModuleType] = {}

    benchmarks: list[BenchmarkSpec] = []
    for index, bench_data in enumerate(data.get("benchmarks") or []):
        where = f"{config_path}: benchmark #{index + 1}"
        if not isinstance(bench_data, dict) or "test" not in bench_data:
            raise SuiteConfigError(f"{where}: missing 'test'")
        if not bench_data.get("enabled", True):
            continue

        source = bench_data.get("source", suite_source)
        name = bench_data.get("name") or str(bench_data["test"])

        hooks: dict[str, Any] = {}
        for hook in ("setup", "teardown"):
            if bench_data.get(hook):
                hooks[hook] = resolve_callable(bench_data[hook], base_path, source, cache)

        options = {**suite_options, **normalize_options(bench_data.get("options"), where)}
        if "defer" in bench_data:
            options["defer"] = bool(bench_data["defer"])
        try:
            benchmarks.append(
                BenchmarkSpec(
                    name=name,
                    test=resolve_callable(bench_data["test"], base_path, source, cache),
                    **hooks,
                    **options,
                )
            )
        except (TypeError, ValueError) as e:
            raise SuiteConfigError(f"{where}: {e}") from e

    return SuiteConfig(
        name=data.get("name", config_path.stem),
        benchmarks=benchmarks,
        path=config_path,
        options=suite_options,
    )
