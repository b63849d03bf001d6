"""Pod image qualification for imagequalify.

Applies a rule set to every container image of a ``V1Pod``.  The pod that
is passed in is never modified; callers receive a qualified copy together
with a record of what was rewritten.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable

from kubernetes.client import V1Container, V1Pod

from .errors import InvalidReference, UnqualifiedImageError
from .models import ContainerType, ImageRewrite, PodQualification, RuleSet, UnmatchedImage
from .qualify import qualify
from .reference import split_image_name

logger = logging.getLogger(__name__)


def pod_containers(pod: V1Pod) -> list[tuple[V1Container, ContainerType]]:
    """Return ``(container, container_type)`` pairs, init containers first."""
    spec = pod.spec
    if spec is None:
        return []
    results: list[tuple[V1Container, ContainerType]] = []
    for container in spec.init_containers or []:
        results.append((container, ContainerType.INIT))
    for container in spec.containers or []:
        results.append((container, ContainerType.APP))
    return results


def _pod_name(pod: V1Pod) -> str:
    return pod.metadata.name if pod.metadata and pod.metadata.name else "<unnamed>"


def _qualify_containers(
    containers: Iterable[tuple[V1Container, ContainerType]],
    rule_set: RuleSet,
    result: PodQualification,
) -> None:
    for container, container_type in containers:
        image = container.image
        domain, _ = split_image_name(image)
        if domain:
            logger.debug(f"not qualifying image {image!r} as it has a domain")
            continue

        matched_domain, qualified = qualify(image, rule_set)
        if not matched_domain:
            logger.debug(f"no rule matches image {image!r} in container {container.name!r}")
            result.unmatched.append(UnmatchedImage(container=container.name, container_type=container_type, image=image))
            continue

        # The qualified name must decompose back to the matched domain and the original image.
        recovered_domain, remainder = split_image_name(qualified)
        if recovered_domain != matched_domain or remainder != image:
            raise InvalidReference(qualified, f"qualified image does not round-trip to {image!r}")

        logger.info(f"qualifying image {image!r} as {qualified!r}")
        container.image = qualified
        result.rewrites.append(
            ImageRewrite(
                container=container.name,
                container_type=container_type,
                original=image,
                qualified=qualified,
                domain=matched_domain,
            )
        )


def qualify_pod(pod: V1Pod, rule_set: RuleSet) -> PodQualification:
    """Qualify every bare container image of ``pod``.

    Images that already name a domain are left alone, as are images no rule
    matches (those are listed in ``unmatched``).

    Args:
        pod: The pod to inspect.  It is not modified.
        rule_set: Prioritized rules.

    Returns:
        A ``PodQualification`` holding a qualified deep copy of the pod.

    Raises:
        InvalidReference: If a container image is not a valid reference.
    """
    qualified_pod = copy.deepcopy(pod)
    result = PodQualification(pod=qualified_pod)
    _qualify_containers(pod_containers(qualified_pod), rule_set, result)

    if result.rewrites:
        logger.info(f"Pod '{_pod_name(pod)}': qualified {len(result.rewrites)} image(s)")
    return result


def validate_pod(pod: V1Pod) -> None:
    """Check that every container image of ``pod`` names a domain.

    Raises:
        UnqualifiedImageError: For the first container with a bare image.
        InvalidReference: If a container image is not a valid reference.
    """
    for container, _ in pod_containers(pod):
        domain, _ = split_image_name(container.image)
        if not domain:
            raise UnqualifiedImageError(container=container.name, image=container.image)
