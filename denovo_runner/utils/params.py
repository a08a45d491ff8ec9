import logging
from pathlib import Path

import click

logger = logging.getLogger("denovo_runner.utils")

SPECTRUM_EXTS = {".mgf"}


def validate_positive_int(ctx, param, value):
    """Validate that value is a positive integer."""
    if value is not None and value <= 0:
        raise click.BadParameter(f"{param.name} must be positive, got {value}")
    return value


def _coerce(value: str):
    lowered = value.lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


def parse_tool_parameters(values) -> dict[str, dict[str, object]]:
    """Parse repeated ``tool.key=value`` options into per-tool parameter dicts.

    Values are coerced to bool/int/float where they look like one; a key given
    twice keeps the last value, except ``ptms`` which accumulates a list.
    """
    parsed: dict[str, dict[str, object]] = {}
    for item in values or ():
        name, sep, value = item.partition("=")
        tool, dot, key = name.partition(".")
        if not sep or not dot or not tool.strip() or not key.strip():
            raise click.BadParameter(f"Expected tool.key=value, got {item!r}", param_hint="--param")
        params = parsed.setdefault(tool.strip().lower(), {})
        key = key.strip()
        if key == "ptms":
            params.setdefault(key, [])
            params[key].append(value.strip())  # type: ignore[union-attr]
        else:
            params[key] = _coerce(value.strip())
    return parsed


def get_spectrum_files(path: str, *, recursive: bool = False) -> list[str]:
    """Get list of spectrum files from path (file or directory).

    Supported formats:
    - Mascot Generic Format: .mgf
    """
    path_obj = Path(path)

    if path_obj.is_file():
        if path_obj.suffix.lower() not in SPECTRUM_EXTS:
            logger.warning(f"File may not be a supported spectrum format: {path_obj.name}")
        return [str(path_obj)]

    files_set: set[Path] = set()
    for ext in SPECTRUM_EXTS:
        if recursive:
            files_set.update(path_obj.rglob(f"*{ext}"))
            files_set.update(path_obj.rglob(f"*{ext.upper()}"))
        else:
            files_set.update(path_obj.glob(f"*{ext}"))
            files_set.update(path_obj.glob(f"*{ext.upper()}"))

    files = sorted(files_set)
    if not files:
        raise click.ClickException(
            f"No spectrum files found in directory: {path}\nSupported formats: MGF"
        )

    return [str(f) for f in files]
