"""
Compare a deployed CloudFormation template with a local one.

Both sides are parsed into documents first, so key order, indentation and
JSON versus YAML formatting never show up as changes.
"""

import json
from typing import Any, List

import yaml
from deepdiff import DeepDiff

from .errors import UsageError

CHANGED_KEYS = ("values_changed", "type_changes")
REMOVED_KEYS = ("dictionary_item_removed", "iterable_item_removed")
ADDED_KEYS = ("dictionary_item_added", "iterable_item_added")


class TemplateLoader(yaml.SafeLoader):
    """YAML loader that understands CloudFormation short-form functions."""


def _construct_intrinsic(loader: yaml.SafeLoader, tag_suffix: str, node: yaml.Node) -> Any:
    """Expand ``!Ref x`` / ``!Sub ...`` into their long ``Fn::`` form."""
    if isinstance(node, yaml.ScalarNode):
        value: Any = loader.construct_scalar(node)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    else:
        value = loader.construct_mapping(node, deep=True)

    if tag_suffix in ("Ref", "Condition"):
        return {tag_suffix: value}
    if tag_suffix == "GetAtt" and isinstance(value, str):
        value = value.split(".", 1)
    return {f"Fn::{tag_suffix}": value}


TemplateLoader.add_multi_constructor("!", _construct_intrinsic)
# Keep dates such as AWSTemplateFormatVersion as strings, like JSON does
TemplateLoader.add_constructor(
    "tag:yaml.org,2002:timestamp",
    lambda loader, node: loader.construct_scalar(node),
)


def load_template(body: Any, label: str = "template") -> Any:
    """Parse a template body (dict, JSON text or YAML text) into a document."""
    if isinstance(body, (dict, list)):
        return body

    try:
        return json.loads(body)
    except ValueError:
        pass

    try:
        return yaml.load(body, Loader=TemplateLoader)
    except yaml.YAMLError as e:
        raise UsageError(f"Could not parse {label}: {e}") from e


def _path(change: Any) -> str:
    return ".".join(str(part) for part in change.path(output_format="list"))


def _render(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def diff_templates(
    deployed: Any,
    local: Any,
    deployed_label: str = "deployed",
    local_label: str = "local",
) -> List[str]:
    """Structural diff from the deployed template to the local one.

    Changed values are reported as ``~ path: old -> new``, removed ones as
    ``- path: value`` and added ones as ``+ path: value``, after a
    ``---``/``+++`` header naming both sides.

    Returns:
        Diff lines; empty when the templates are equivalent
    """
    deep_diff = DeepDiff(
        load_template(deployed, deployed_label),
        load_template(local, local_label),
        verbose_level=1,
        view="tree",
    )
    if len(deep_diff.keys()) == 0:
        return []

    lines = [f"--- {deployed_label}", f"+++ {local_label}"]

    for key in CHANGED_KEYS:
        for change in sorted(deep_diff.get(key, []), key=_path):
            lines.append(f"~ {_path(change)}: {_render(change.t1)} -> {_render(change.t2)}")

    for key in REMOVED_KEYS:
        for change in sorted(deep_diff.get(key, []), key=_path):
            lines.append(f"- {_path(change)}: {_render(change.t1)}")

    for key in ADDED_KEYS:
        for change in sorted(deep_diff.get(key, []), key=_path):
            lines.append(f"+ {_path(change)}: {_render(change.t2)}")

    return lines
