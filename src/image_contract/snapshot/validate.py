"""Validate every component of an application snapshot."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

import structlog

from image_contract.errors import ComponentValidationError
from image_contract.snapshot.report import Component

if TYPE_CHECKING:
    import threading

    from image_contract.image.validate import ImageValidator
    from image_contract.output import Output
    from image_contract.policy.context import PolicyContext
    from image_contract.snapshot.input import SnapshotComponent, SnapshotSpec

logger = structlog.get_logger(__name__)


def component_from_output(component: SnapshotComponent, output: Output) -> Component:
    """Summarize one image Output as a report Component."""
    violations = output.violations()
    return Component(
        name=component.name,
        container_image=output.image_url or component.container_image,
        violations=violations,
        warnings=output.warnings(),
        success_count=output.success_count(),
        success=not violations,
        signatures=list(output.signatures),
    )


def validate_snapshot(
    spec: SnapshotSpec,
    policy: PolicyContext,
    validator: ImageValidator,
    max_workers: int = 4,
    cancel: threading.Event | None = None,
) -> list[Component]:
    """Validate all snapshot components concurrently.

    Each component gets a fresh PolicyContext so that an attestation time
    resolved for one image never leaks into another.

    Args:
        spec: Snapshot to validate.
        policy: Template policy context.
        validator: Pipeline used for each image.
        max_workers: Number of components validated in parallel.
        cancel: Cancellation signal forwarded to every run.

    Returns:
        Components in snapshot order.

    Raises:
        ComponentValidationError: If any component could not be validated.
    """

    def _validate(component: SnapshotComponent) -> Component:
        output = validator.validate(component.container_image, policy.fresh(), cancel)
        return component_from_output(component, output)

    if not spec.components:
        return []

    workers = max(1, min(max_workers, len(spec.components)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_validate, component) for component in spec.components]

    components: list[Component] = []
    errors: list[str] = []
    for component, future in zip(spec.components, futures):
        try:
            components.append(future.result())
        except Exception as e:
            logger.debug(
                "component_validation_failed",
                component=component.name,
                image=component.container_image,
                error=str(e),
            )
            errors.append(
                f"error validating image {component.container_image} "
                f"of component {component.name}: {e}"
            )

    if errors:
        raise ComponentValidationError(errors)
    return components


__all__ = ["component_from_output", "validate_snapshot"]
