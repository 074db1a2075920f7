from __future__ import annotations

from collections.abc import Sequence
from importlib import import_module
from types import ModuleType
from typing import Any


def build_optional_dependency_error(
    *,
    feature: str,
    extras: Sequence[str],
    missing_module: str | None,
) -> ModuleNotFoundError:
    c_extras = ",".join(dict.fromkeys(extras))
    c_missing = (
        f"Missing optional dependency `{missing_module}`."
        if missing_module
        else "Missing optional dependency."
    )
    return ModuleNotFoundError(
        f"{feature} is unavailable. {c_missing} "
        f"Install it with `pip install \"reportkit[{c_extras}]\"`."
    )


def _is_required_module_missing(
    missing_name: str | None, required_modules: Sequence[str]
) -> bool:
    if not required_modules:
        return True
    # `polars.dataframe` missing still means `polars` is missing.
    c_missing_root = (missing_name or "").split(".")[0]
    return any(_mod.split(".")[0] == c_missing_root for _mod in required_modules)


def import_optional_module(
    *,
    module_name: str,
    package: str,
    feature: str,
    extras: Sequence[str],
    required_modules: Sequence[str],
) -> ModuleType:
    try:
        return import_module(module_name, package=package)
    except ModuleNotFoundError as exc:
        if _is_required_module_missing(exc.name, required_modules):
            raise build_optional_dependency_error(
                feature=feature,
                extras=extras,
                missing_module=exc.name,
            ) from exc
        raise


def import_optional_attr(
    *,
    module_name: str,
    attr_name: str,
    package: str,
    feature: str,
    extras: Sequence[str],
    required_modules: Sequence[str],
) -> Any:
    module = import_optional_module(
        module_name=module_name,
        package=package,
        feature=feature,
        extras=extras,
        required_modules=required_modules,
    )
    return getattr(module, attr_name)
