# driftwatch/services/policy_loader.py
"""
Policy Loader
-------------
Reads one YAML policy document per resource and validates it into a
``Policy``. A document that cannot be read or validated becomes a
``PolicyLoadFailure`` so the audit engine can log it as an ERROR event
without stopping the other resources.
"""

import logging
from pathlib import Path
from typing import Any, List, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from driftwatch.core.drift.types import Policy, PolicyLoadFailure
from driftwatch.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

POLICY_SUFFIXES = (".yaml", ".yml")

PolicyDocument = Union[Policy, PolicyLoadFailure]


def _format_errors(error: PydanticValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{location}: {item.get('msg')}" if location else item.get("msg"))
    return "; ".join(messages)


def parse_policy(document: Any, source: str = "<memory>") -> Policy:
    """
    Validate a decoded policy document.

    Args:
        document: Mapping with ``resource_name`` and ``rules``
        source: Where the document came from, for error messages

    Raises:
        ValidationError: If the document does not describe a valid policy
    """
    resource_name = None
    if isinstance(document, dict) and isinstance(document.get("resource_name"), str):
        resource_name = document["resource_name"]

    try:
        return Policy.model_validate(document)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid policy {source}: {_format_errors(e)}",
            resource_name=resource_name,
            source=source
        ) from e


def load_policy_file(path: Path) -> PolicyDocument:
    """
    Load one policy file.

    Returns:
        The Policy, or a PolicyLoadFailure describing why it is unusable
    """
    source = str(path)
    try:
        document = yaml.safe_load(path.read_text(encoding="utf-8"))
        return parse_policy(document, source)
    except ValidationError as e:
        reason = e.message
        resource_name = e.resource_name or path.stem
    except yaml.YAMLError as e:
        reason = f"Invalid YAML in {source}: {str(e)}"
        resource_name = path.stem
    except UnicodeDecodeError as e:
        reason = f"Policy {source} is not valid UTF-8: {str(e)}"
        resource_name = path.stem
    except OSError as e:
        reason = f"Could not read {source}: {str(e)}"
        resource_name = path.stem

    logger.warning(f"Skipping policy {source}: {reason}")
    return PolicyLoadFailure(resource_name=resource_name, source=source, reason=reason)


def load_policies(directory: Union[str, Path]) -> List[PolicyDocument]:
    """
    Load every ``*.yaml`` / ``*.yml`` file of a directory, sorted by name.

    Raises:
        ValidationError: If the directory does not exist
    """
    root = Path(directory)
    if not root.is_dir():
        raise ValidationError(f"Policies directory not found: {root}", source=str(root))

    files = sorted(
        p for p in root.iterdir()
        if p.is_file() and p.suffix.lower() in POLICY_SUFFIXES
    )
    documents = [load_policy_file(path) for path in files]

    loaded = sum(1 for document in documents if isinstance(document, Policy))
    logger.info(f"Loaded {loaded} of {len(files)} policies from {root}")
    return documents
