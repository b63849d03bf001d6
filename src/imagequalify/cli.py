"""imagequalify: qualify bare container image references from a rule file.

Commands:

1. ``qualify``: print the qualified form of one or more bare images
2. ``rules``: print the rules in the order they are tried
3. ``audit``: report which images in a namespace's pods would be qualified
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict

from ._version import __version__
from .audit import audit_pods
from .errors import ConfigError, InvalidReference, RuleError
from .kubernetes_controller import KubernetesController, KubernetesControllerException
from .models import DEFAULT_NAMESPACE, AuditStatus, QualifiedImage, RuleSet
from .qualify import qualify_image
from .rules import load_rule_set

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI usage. Only called from main()."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s : %(name)-13s : %(levelname)s :: %(message)s",
    )


def _get_current_namespace() -> str:
    """Read active namespace from kubeconfig or in-cluster service account."""
    import kubernetes.config

    # 1. Try kubeconfig (local dev)
    try:
        _, active_context = kubernetes.config.list_kube_config_contexts()
        if ns := active_context.get("context", {}).get("namespace"):
            return ns
    except Exception:  # noqa: S110
        pass

    # 2. Try in-cluster service account (running in Pod)
    try:
        with open("/var/run/secrets/kubernetes.io/serviceaccount/namespace") as f:
            return f.read().strip()
    except FileNotFoundError:
        pass

    # 3. Fallback
    return DEFAULT_NAMESPACE


def _load_rule_set(path: str) -> RuleSet | None:
    """Load the rule set at ``path``, logging any failure.

    Returns:
        The prioritized ``RuleSet``, or ``None`` if it could not be loaded.
    """
    try:
        return load_rule_set(path)
    except (RuleError, ConfigError) as e:
        logger.error(str(e))
    except OSError as e:
        logger.error(f"Failed to read rules from {path}: {e}")
    return None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def run_qualify(args: argparse.Namespace) -> int:
    """Print the qualified form of each image.

    Images no rule matches are printed unchanged.

    Returns:
        0 on success, 1 if the rules could not be loaded or any image was
        invalid or already qualified.
    """
    rule_set = _load_rule_set(args.rules)
    if rule_set is None:
        return 1

    exit_code = 0
    results: list[QualifiedImage] = []
    for image in args.images:
        try:
            results.append(qualify_image(image, rule_set))
        except InvalidReference as e:
            logger.error(f"Invalid image {image!r}: {e.message}")
            exit_code = 1

    if args.json:
        print(json.dumps([asdict(result) for result in results], indent=2))
    else:
        for result in results:
            print(result.qualified or result.image)

    return exit_code


def run_rules(args: argparse.Namespace) -> int:
    """Print the prioritized rules as ``pattern<TAB>domain`` lines."""
    rule_set = _load_rule_set(args.rules)
    if rule_set is None:
        return 1

    for rule in rule_set:
        print(f"{rule.pattern}\t{rule.domain}")
    return 0


def run_audit(args: argparse.Namespace) -> int:
    """Audit the pods of a namespace and print a JSON report.

    Returns:
        Process exit code (0 = PASS, 1 = FAIL, 2 = cluster error).
    """
    rule_set = _load_rule_set(args.rules)
    if rule_set is None:
        return 1

    try:
        controller = KubernetesController(context=args.context, insecure=args.insecure)
        pods = controller.list_pods(namespace=args.namespace)
    except KubernetesControllerException as e:
        logger.error(f"Cluster access failed: {e}")
        return AuditStatus.ERROR.exit_code

    report = audit_pods(
        pods=pods,
        rule_set=rule_set,
        context=args.context or "in-cluster",
        namespace=args.namespace,
    )
    print(json.dumps(report.to_dict(), indent=2))
    return report.status.exit_code


# ---------------------------------------------------------------------------
# CLI argument parsing
# ---------------------------------------------------------------------------


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Optional list of argument strings (defaults to ``sys.argv``).

    Returns:
        Parsed ``argparse.Namespace`` with a ``handler`` attribute naming the command.
    """
    parser = argparse.ArgumentParser(
        description="imagequalify: qualify bare container image references using pattern rules",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    rules_help = "Rule file: '<pattern> <domain>' lines, or a .yaml/.yml/.json config"

    qualify_parser = subparsers.add_parser(
        "qualify",
        help="Print the qualified form of bare image references",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    qualify_parser.add_argument("rules", help=rules_help)
    qualify_parser.add_argument("images", nargs="+", help="Bare image references, e.g. 'busybox:latest'")
    qualify_parser.add_argument("--json", action="store_true", help="Print results as JSON")
    qualify_parser.set_defaults(handler=run_qualify)

    order_parser = subparsers.add_parser(
        "rules",
        help="Print the rules in the order they are tried",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    order_parser.add_argument("rules", help=rules_help)
    order_parser.set_defaults(handler=run_rules)

    audit_parser = subparsers.add_parser(
        "audit",
        help="Report bare images in a namespace's pods and how they would be qualified",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    audit_parser.add_argument("rules", help=rules_help)
    audit_parser.add_argument("--context", help="Kubeconfig context name to use for cluster connection")
    audit_parser.add_argument(
        "--namespace",
        default=_get_current_namespace(),
        help="Kubernetes namespace (default: from kubeconfig or 'default')",
    )
    audit_parser.add_argument(
        "--insecure",
        action="store_true",
        help="Disable TLS certificate verification for the cluster connection",
    )
    audit_parser.set_defaults(handler=run_audit)

    return parser.parse_args(args)


def main() -> None:
    """CLI entry point for imagequalify."""
    try:
        parsed_args = parse_args()
        _setup_logging(verbose=parsed_args.verbose)
        sys.exit(parsed_args.handler(parsed_args))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
