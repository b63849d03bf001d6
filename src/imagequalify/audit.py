"""Audit the container images of running pods against a rule set."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from kubernetes.client import V1Pod

from .admission import pod_containers
from .errors import InvalidReference
from .models import AuditReport, AuditStatus, AuditSummary, ImageRewrite, PodAuditEntry, RuleSet, UnmatchedImage
from .qualify import qualify_image
from .reference import split_image_name

logger = logging.getLogger(__name__)


def _audit_pod(pod: V1Pod, rule_set: RuleSet, report: AuditReport) -> None:
    """Classify every container of ``pod`` and add it to ``report``.

    Each container lands in exactly one summary bucket: qualified, rewritable,
    unmatched or invalid.
    """
    name = pod.metadata.name
    summary = report.summary
    entry = PodAuditEntry(name=name)

    for container, container_type in pod_containers(pod):
        summary.total_containers += 1
        image = container.image

        try:
            domain, _ = split_image_name(image)
            if domain:
                summary.qualified_containers += 1
                continue
            result = qualify_image(image, rule_set)
        except InvalidReference as e:
            logger.warning(f"Pod '{name}' container '{container.name}': {e}")
            report.errors.append(f"{name}/{container.name}: invalid image {e.reference!r}: {e.message}")
            summary.invalid_containers += 1
            continue

        if result.matched:
            summary.rewritable_containers += 1
            entry.rewrites.append(
                ImageRewrite(
                    container=container.name,
                    container_type=container_type,
                    original=image,
                    qualified=result.qualified,
                    domain=result.domain,
                )
            )
        else:
            summary.unmatched_containers += 1
            entry.unmatched.append(UnmatchedImage(container=container.name, container_type=container_type, image=image))

    if entry.rewrites or entry.unmatched:
        report.pods.append(entry)


def audit_pods(pods: list[V1Pod], rule_set: RuleSet, context: str, namespace: str) -> AuditReport:
    """Report which bare images in ``pods`` the rule set would qualify.

    An image that cannot be parsed is listed under ``errors`` and counted as
    invalid; the pod's other containers are still classified.

    Args:
        pods: Pods to inspect.  They are not modified.
        rule_set: Prioritized rules.
        context: Kubeconfig context name for the report header.
        namespace: Inspected namespace for the report header.

    Returns:
        An ``AuditReport``; status is FAIL when any bare image is unmatched or invalid.
    """
    report = AuditReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        context=context,
        namespace=namespace,
        summary=AuditSummary(total_pods=len(pods)),
    )

    for pod in pods:
        _audit_pod(pod, rule_set, report)

    summary = report.summary
    if summary.unmatched_containers or summary.invalid_containers:
        report.status = AuditStatus.FAIL

    logger.info(
        f"Audited {summary.total_pods} pod(s): {summary.rewritable_containers} rewritable, "
        f"{summary.unmatched_containers} unmatched, {summary.invalid_containers} invalid"
    )
    return report
