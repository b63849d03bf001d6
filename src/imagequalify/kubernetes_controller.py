"""Kubernetes API access for the imagequalify audit command.

Only pod listing is needed: the audit reads each pod's container images and
checks them against a rule set.  Both in-cluster and kubeconfig
authentication are supported.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator

import kubernetes
import kubernetes.client
import kubernetes.config
from kubernetes.client import V1Pod

from .models import DEFAULT_LIST_TIMEOUT_SECONDS, DEFAULT_POD_PAGE_SIZE

_PAGE_RETRY_DELAY_SECONDS = 1


class KubernetesControllerException(Exception):
    """Raised when the cluster cannot be reached or queried."""


class KubernetesController:
    """Read-only pod access on top of the Kubernetes Python client.

    Args:
        context: Kubeconfig context name.  When omitted, in-cluster config is
            tried first, then the current kubeconfig context.
        insecure: When ``True``, skip TLS certificate verification.
    """

    def __init__(self, context: str | None = None, insecure: bool = False) -> None:
        self.logger = logging.getLogger(__name__)

        # The REST client logs every request body at DEBUG
        rest_logger = logging.getLogger("kubernetes.client.rest")
        if rest_logger.level == logging.NOTSET:
            rest_logger.setLevel(logging.INFO)

        self._context = context
        self._insecure = insecure
        self._api_client: kubernetes.client.ApiClient | None = None
        self._core_v1: kubernetes.client.CoreV1Api | None = None
        self._client_lock = threading.Lock()

        self._initialize_client()

    @property
    def source(self) -> str:
        """Human-readable name of the configuration the client was built from."""
        return self._context or "in-cluster/default"

    def _load_config(self) -> None:
        """Load cluster credentials into the client's default configuration."""
        if self._context:
            kubernetes.config.load_kube_config(context=self._context)
            self.logger.info(f"Using kubeconfig context {self._context}")
            return

        try:
            kubernetes.config.load_incluster_config()
            self.logger.info("Using in-cluster service account")
        except kubernetes.config.ConfigException:
            self.logger.info("No in-cluster config; using current kubeconfig context")
            kubernetes.config.load_kube_config()

    def _initialize_client(self) -> None:
        with self._client_lock:
            if self._api_client:
                return

            try:
                self._load_config()

                configuration = kubernetes.client.Configuration.get_default_copy()
                if self._insecure:
                    self.logger.warning("TLS certificate verification is disabled")
                    configuration.verify_ssl = False
                    configuration.assert_hostname = False

                self._api_client = kubernetes.client.ApiClient(configuration)
                self._core_v1 = kubernetes.client.CoreV1Api(self._api_client)
            except Exception as e:
                message = f"Failed to initialize Kubernetes client for {self.source}: {e}"
                self.logger.error(message)
                raise KubernetesControllerException(message) from e

    def iter_pod_pages(
        self,
        namespace: str,
        limit: int = DEFAULT_POD_PAGE_SIZE,
        timeout: int = DEFAULT_LIST_TIMEOUT_SECONDS,
    ) -> Iterator[list[V1Pod]]:
        """Yield the pods of ``namespace`` one API page at a time.

        A failed page after the first is retried with the same continue token
        until ``timeout`` seconds have passed since the first request.

        Raises:
            KubernetesControllerException: If the first page cannot be fetched,
                or the listing is still incomplete when ``timeout`` expires.
        """
        deadline = time.time() + timeout
        token: str | None = None
        first = True

        while time.time() < deadline:
            try:
                page = self._core_v1.list_namespaced_pod(namespace=namespace, _continue=token, limit=limit)
            except Exception as e:
                if first:
                    raise KubernetesControllerException(f"Failed to list pods in {namespace}: {e}") from e
                self.logger.warning(f"Retrying pod page in {namespace} after error: {e}")
                time.sleep(_PAGE_RETRY_DELAY_SECONDS)
                continue

            first = False
            yield page.items
            token = page.metadata._continue
            if not token:
                return

        message = f"Pod listing in {namespace} did not complete within {timeout}s"
        self.logger.error(message)
        raise KubernetesControllerException(message)

    def list_pods(
        self,
        namespace: str,
        limit: int = DEFAULT_POD_PAGE_SIZE,
        timeout: int = DEFAULT_LIST_TIMEOUT_SECONDS,
    ) -> list[V1Pod]:
        """List every pod in ``namespace``, following pagination.

        Raises:
            KubernetesControllerException: If the first page cannot be fetched, or the
                listing does not complete within ``timeout`` seconds.
        """
        pods: list[V1Pod] = []
        for items in self.iter_pod_pages(namespace, limit=limit, timeout=timeout):
            pods.extend(items)
        self.logger.debug(f"Listed {len(pods)} pod(s) in {namespace}")
        return pods
