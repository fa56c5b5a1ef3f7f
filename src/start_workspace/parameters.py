"""Workspace parameter parsing.

Decodes the `parameters` action input, a YAML mapping of rich parameter
names to values, into a flat ``dict[str, str]``.

YAML is loaded with ``yaml.BaseLoader`` so every scalar is kept as the
string the user wrote: ``cpu: 4`` yields ``"4"`` and ``dotfiles: yes``
yields ``"yes"``. Nested mappings or sequences are rejected.
"""

from typing import Dict

import yaml
from pydantic import StrictStr, TypeAdapter, ValidationError

from src.start_workspace.errors import ParameterFormatError


WorkspaceParameters = Dict[str, str]

_PARAMETERS_ADAPTER = TypeAdapter(Dict[StrictStr, StrictStr])


def parse_parameters(raw: str) -> WorkspaceParameters:
    """Decode a YAML parameter blob into a flat string mapping.

    Args:
        raw: YAML text, one ``name: value`` pair per line.

    Returns:
        Mapping of parameter name to string value.

    Raises:
        ParameterFormatError: If the text is not valid YAML, is not a
            mapping, or contains a value that is not a plain string.
    """
    try:
        parsed = yaml.load(raw, Loader=yaml.BaseLoader)
    except yaml.YAMLError as exc:
        raise ParameterFormatError(
            f"Workspace parameters are not valid YAML: {exc}"
        ) from exc

    if not isinstance(parsed, dict):
        raise ParameterFormatError(
            "Workspace parameters must be a YAML mapping of names to values"
        )

    try:
        return _PARAMETERS_ADAPTER.validate_python(parsed)
    except ValidationError as exc:
        invalid = sorted(
            {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        )
        raise ParameterFormatError(
            "Workspace parameter values must be plain strings, "
            f"got nested values for: {', '.join(invalid)}"
        ) from exc


def dump_parameters(parameters: WorkspaceParameters) -> str:
    """Encode a parameter mapping as YAML for the `coder create` CLI.

    Non-ASCII characters are written as escapes in double-quoted scalars,
    so Unicode line breaks such as U+0085 survive a reload.
    """
    return yaml.safe_dump(
        parameters,
        default_flow_style=False,
        sort_keys=False,
        width=2**16,
    )
