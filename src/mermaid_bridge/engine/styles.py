"""modifyStyle: resolve target cells, plan style changes, apply them in one batch.

Planning never touches the canvas. If any key or operation is invalid the
whole request is rejected and nothing is applied.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from pydantic import ValidationError

from mermaid_bridge.config import DEFAULT_CONFIG, Config
from mermaid_bridge.contracts.common import ErrorCode, ResponseEnvelope
from mermaid_bridge.contracts.requests import (
    MODIFY_STYLE,
    STYLE_TARGETS,
    MessageEvent,
    ModifyStyleRequest,
    StyleOperation,
)
from mermaid_bridge.engine.dispatcher import build_envelope, send_envelope
from mermaid_bridge.observe.log import StructuredLogger
from mermaid_bridge.validation.validators import check_envelope

ENUM_VALUES: dict[str, tuple[str, ...]] = {
    "align": ("left", "center", "right"),
    "verticalAlign": ("top", "middle", "bottom"),
}

EDGE_ONLY_KEYS = frozenset({"startArrow", "endArrow", "startFill", "endFill", "edgeStyle", "curved"})

COLOR_KEYS = frozenset({"fillColor", "strokeColor", "fontColor"})

NUMERIC_OPS: dict[str, Callable[[float, float], float]] = {
    "increase": lambda current, operand: current + operand,
    "decrease": lambda current, operand: current - operand,
    "multiply": lambda current, operand: current * operand,
}

SET_OP = "set"


@dataclass
class StyleIssue:
    error_code: ErrorCode
    error: str


@dataclass
class StyleChange:
    """One ``set_cell_styles`` call."""

    key: str
    value: Any
    cells: list[Any]


@dataclass
class StylePlan:
    cells: list[Any] = field(default_factory=list)
    changes: list[StyleChange] = field(default_factory=list)
    errors: list[StyleIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def extend(self, other: "StylePlan") -> None:
        self.changes.extend(other.changes)
        self.errors.extend(other.errors)


def resolve_target_cells(host: Any, target: str) -> list[Any]:
    if target == "selected":
        return list(host.get_selection() or [])
    return list(host.child_cells(target) or [])


def filter_cells_for_property(cells: list[Any], key: str, host: Any) -> list[Any]:
    """Edge-only keys apply to edges; every other key applies to all cells."""
    if key not in EDGE_ONLY_KEYS:
        return list(cells)
    return [cell for cell in cells if host.is_edge(cell)]


def validate_enum_value(key: str, value: Any) -> StyleIssue | None:
    allowed = ENUM_VALUES.get(key)
    if allowed is None or value in allowed:
        return None
    return StyleIssue(
        ErrorCode.INVALID_VALUE,
        f"Invalid value for {key}: {value!r} (expected one of {', '.join(allowed)})",
    )


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _tidy(value: float) -> int | float:
    return int(value) if value.is_integer() else round(value, 6)


def plan_absolute_styles(cells: list[Any], styles: Mapping[str, Any], host: Any) -> StylePlan:
    plan = StylePlan(cells=list(cells))
    for key, value in styles.items():
        issue = validate_enum_value(key, value)
        if issue is not None:
            plan.errors.append(issue)
            continue
        targets = filter_cells_for_property(cells, key, host)
        if targets:
            plan.changes.append(StyleChange(key, value, targets))
    return plan


def plan_relative_operations(
    cells: list[Any], operations: Mapping[str, StyleOperation], host: Any
) -> StylePlan:
    plan = StylePlan(cells=list(cells))
    for key, operation in operations.items():
        op = operation.op
        if key in COLOR_KEYS and op != SET_OP:
            plan.errors.append(
                StyleIssue(
                    ErrorCode.UNSUPPORTED_OPERATION,
                    f"Color properties only support set operation ({key}: {op})",
                )
            )
            continue

        targets = filter_cells_for_property(cells, key, host)
        if op == SET_OP:
            issue = validate_enum_value(key, operation.value)
            if issue is not None:
                plan.errors.append(issue)
            elif targets:
                plan.changes.append(StyleChange(key, operation.value, targets))
            continue

        apply = NUMERIC_OPS.get(op)
        if apply is None:
            plan.errors.append(StyleIssue(ErrorCode.UNSUPPORTED_OPERATION, f"Unsupported operation: {op}"))
            continue
        operand = _number(operation.value)
        if operand is None:
            plan.errors.append(
                StyleIssue(ErrorCode.INVALID_VALUE, f"Operation {op} on {key} needs a numeric value")
            )
            continue

        # Current values differ per cell, so each cell gets its own change.
        for cell in targets:
            current = _number(host.get_cell_style(cell).get(key))
            plan.changes.append(StyleChange(key, _tidy(apply(current or 0.0, operand)), [cell]))
    return plan


def plan_style_changes(host: Any, request: ModifyStyleRequest) -> StylePlan:
    cells = resolve_target_cells(host, request.target)
    plan = StylePlan(cells=cells)
    if not cells:
        plan.errors.append(StyleIssue(ErrorCode.NO_TARGET_CELLS, f"No cells found for target: {request.target}"))
        return plan
    plan.extend(plan_absolute_styles(cells, request.styles, host))
    plan.extend(plan_relative_operations(cells, request.operations, host))
    return plan


def apply_style_plan(host: Any, plan: StylePlan) -> int:
    """Apply every planned change inside one host batch. Returns the modified cell count."""
    with host.batch_update():
        for change in plan.changes:
            host.set_cell_styles(change.key, change.value, change.cells)
    host.set_modified(True)
    return len(plan.cells)


def parse_style_request(data: Any) -> ModifyStyleRequest | StyleIssue:
    if not isinstance(data, Mapping):
        return StyleIssue(ErrorCode.INVALID_FORMAT, "Message must be an object")
    target = data.get("target")
    if not isinstance(target, str) or not target:
        return StyleIssue(ErrorCode.INVALID_FORMAT, "Missing or invalid 'target' field")
    if target not in STYLE_TARGETS:
        return StyleIssue(
            ErrorCode.INVALID_TARGET,
            f"Invalid target: {target} (expected one of {', '.join(STYLE_TARGETS)})",
        )
    if not data.get("styles") and not data.get("operations"):
        return StyleIssue(ErrorCode.INVALID_FORMAT, "Message must contain 'styles' or 'operations'")
    try:
        return ModifyStyleRequest.model_validate(
            {
                "target": target,
                "styles": data.get("styles") or {},
                "operations": data.get("operations") or {},
            }
        )
    except ValidationError as e:
        return StyleIssue(ErrorCode.INVALID_FORMAT, f"Invalid modifyStyle request: {e.errors()[0]['msg']}")


def handle_modify_style(
    host: Any,
    event: MessageEvent,
    data: Any,
    *,
    config: Config = DEFAULT_CONFIG,
    log: StructuredLogger | None = None,
) -> ResponseEnvelope:
    """Process one modifyStyle message and return the envelope sent back."""
    log = log or StructuredLogger.from_config(config)

    def finish(envelope: ResponseEnvelope) -> ResponseEnvelope:
        send_envelope(event.source, event.origin, envelope, log=log)
        return envelope

    def fail(issue: StyleIssue) -> ResponseEnvelope:
        log.error(f"modifyStyle failed: {issue.error}", {"errorCode": issue.error_code.value})
        return finish(build_envelope(False, issue.error, issue.error_code, event=MODIFY_STYLE))

    checked = check_envelope(event.origin, data, config)
    if not checked.valid:
        return fail(StyleIssue(checked.error_code or ErrorCode.INVALID_FORMAT, checked.error or "Invalid message"))

    request = parse_style_request(data)
    if isinstance(request, StyleIssue):
        return fail(request)

    try:
        plan = plan_style_changes(host, request)
    except Exception as e:
        return fail(StyleIssue(ErrorCode.STYLE_FAILED, f"Failed to read cell styles: {e}"))
    if not plan.ok:
        return fail(plan.errors[0])

    try:
        modified = apply_style_plan(host, plan)
    except Exception as e:
        return fail(StyleIssue(ErrorCode.STYLE_FAILED, f"Failed to apply styles: {e}"))

    log.info(f"Modified styles of {modified} cells", {"target": request.target})
    return finish(build_envelope(True, data={"modifiedCount": modified}, event=MODIFY_STYLE))
