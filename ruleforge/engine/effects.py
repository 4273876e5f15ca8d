"""
Effect Applier
==============
Applies one declared effect to the invocation's root objects.

Operations:
- set            assign a value at a path, coercing to the field's declared type
- add            append to a list, or increment a numeric value
- subtract       decrement a numeric value (e.g. inventory[potion]), floored at zero
- add-entity     add an id to a roster through the entity service
- remove-entity  remove an id from a roster through the entity service

Effects are independent: `apply` never raises, it returns an EffectOutcome.
"""

import inspect
import logging
import re
from collections.abc import Mapping, MutableMapping, MutableSequence
from typing import Any, Dict, Optional, Tuple, Union

from ruleforge.engine.accessors import (
    assign,
    coerce_value,
    field_type,
    get_child,
    is_list_type,
    read_path,
    resolve_name,
    resolve_parent,
    set_path,
    split_path,
)
from ruleforge.engine.preconditions import ROOT_NAMES
from ruleforge.engine.templates import (
    has_unresolved_placeholder,
    stringify,
    substitute_placeholders,
    substitute_value,
)
from ruleforge.errors import CoercionError, EffectError, PathError
from ruleforge.models.results import EffectOutcome
from ruleforge.models.ruleset import EffectSpec

logger = logging.getLogger(__name__)

KNOWN_OPERATIONS = {"set", "add", "subtract", "addentity", "removeentity"}


def normalize_operation(operation: Any) -> str:
    """'add-entity', 'addEntity' and 'add_entity' all normalize to 'addentity'."""
    return re.sub(r"[-_\s]", "", str(operation or "")).lower()


def split_target(target: str) -> Tuple[Optional[str], str]:
    """Split 'character.stats.strength' into ('character', 'stats.strength')."""
    head, sep, rest = target.partition(".")
    root = ROOT_NAMES.get(head.strip().lower())
    if not sep or root is None or not rest.strip():
        return None, target
    return root, rest.strip()


def _to_number(value: Any) -> Union[int, float]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        text = str(value).strip()
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        raise CoercionError(f"'{value}' is not a number")


class EffectApplier:
    """
    Args:
        entity_service: Collaborator exposing `add_to_roster(roster, entity_id)`
            and `remove_from_roster(roster, entity_id)` (sync or async). Optional;
            without it entity effects are recorded as generic no-ops.
    """

    def __init__(self, entity_service=None):
        self.entity_service = entity_service

    async def apply(
        self,
        effect: EffectSpec,
        arguments: Dict[str, Any],
        roots: Dict[str, Any],
    ) -> EffectOutcome:
        target = substitute_placeholders(effect.target, arguments)
        value = substitute_value(effect.value, arguments)
        op = normalize_operation(effect.operation)
        logger.debug(f"Applying effect: Target={target}, Operation={effect.operation}, Value={value!r}")

        def failed(reason: str) -> EffectOutcome:
            logger.info(f"Effect on {target} failed: {reason}")
            return EffectOutcome.failed(target, effect.operation, reason)

        root_name, path = split_target(target)
        if root_name is None:
            return failed(f"Unsupported target path: {target}")
        if op not in KNOWN_OPERATIONS:
            return failed(f"Unknown operation: {effect.operation}")

        try:
            if op == "addentity":
                description = await self._apply_entity(True, target, value)
            elif op == "removeentity":
                description = await self._apply_entity(False, target, value)
            else:
                root_obj = roots.get(root_name)
                if root_obj is None:
                    return failed(f"Failed to apply effect: {root_name} not found in invocation")
                if op == "set":
                    description = self._apply_set(root_obj, path, value)
                elif op == "add":
                    description = self._apply_add(root_obj, path, value)
                else:
                    description = self._apply_subtract(root_obj, path, value)
        except EffectError as e:
            return failed(str(e))
        except Exception as e:
            logger.error(f"Effect {effect.operation} on {target} raised: {e}", exc_info=True)
            return failed(f"Failed to apply effect: {e}")

        return EffectOutcome.applied(target, effect.operation, description)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def _apply_set(self, root: Any, path: str, value: Any) -> str:
        stored = set_path(root, path, value)
        return f"Set {path} = {value} (verified: {stored})"

    def _apply_add(self, root: Any, path: str, value: Any) -> str:
        segments = split_path(path)

        current = read_path(root, segments, None)
        if isinstance(current, MutableSequence):
            current.append(value)
            return f"Added {value} to {path}"

        # "pokemon.add" style targets name the list in the first segment
        if len(segments) > 1:
            first = get_child(root, segments[0], None)
            if isinstance(first, MutableSequence):
                first.append(value)
                return f"Added {value} to {segments[0]}"

        container, name = resolve_parent(root, segments)
        if current is None:
            declared = field_type(container, name)
            if is_list_type(declared):
                assign(container, name, [value])
                return f"Added {value} to {path}"
            if isinstance(container, MutableMapping) and declared is None:
                try:
                    amount = _to_number(value)
                except CoercionError:
                    assign(container, name, [value])
                    return f"Added {value} to {path}"
                assign(container, name, amount)
                return f"Added {amount} to {path} (now {amount})"
            raise EffectError(f"Add effect not applicable to {path}")

        if isinstance(current, bool) or not isinstance(current, (int, float)):
            raise EffectError(f"Add effect not applicable to {path}")
        new_value = current + _to_number(value)
        stored = assign(container, name, coerce_value(new_value, field_type(container, name)))
        return f"Added {value} to {path} (now {stored})"

    def _apply_subtract(self, root: Any, path: str, value: Any) -> str:
        segments = split_path(path)
        container = read_path(root, segments[:-1]) if len(segments) > 1 else root
        name = segments[-1]

        if container is None:
            raise PathError(f"Subtract effect not applicable to {path}")
        if isinstance(container, Mapping) and resolve_name(container, name) is None:
            raise EffectError(f"Subtract effect not applicable to {path}: '{name}' not present")

        current = get_child(container, name)
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            try:
                current = int(current)
            except (TypeError, ValueError):
                raise EffectError(f"Subtract effect not applicable to {path}: value is not numeric")

        amount = _to_number(value)
        new_value = max(0, current - amount)
        stored = assign(container, name, coerce_value(new_value, field_type(container, name)))
        return f"Subtracted {amount} from {path} (now {stored})"

    async def _apply_entity(self, adding: bool, target: str, value: Any) -> str:
        entity_id = stringify(value).strip()
        if not entity_id or has_unresolved_placeholder(entity_id):
            raise EffectError(f"Entity ID not properly resolved: '{entity_id}'")

        method_name = "add_to_roster" if adding else "remove_from_roster"
        method = getattr(self.entity_service, method_name, None) if self.entity_service is not None else None
        if not callable(method):
            if adding:
                return f"Generic entity addition processed: {entity_id} to {target}"
            return f"Generic entity removal processed: {entity_id} from {target}"

        result = method(target, entity_id)
        if inspect.isawaitable(result):
            result = await result

        if adding:
            if result is False:
                return f"Entity {entity_id} already in {target}"
            return f"Added entity {entity_id} to {target}"
        if result is False:
            return f"Entity {entity_id} was not in {target}"
        return f"Removed entity {entity_id} from {target}"
