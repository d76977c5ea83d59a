"""CLI entry point: evalkit

Subcommands:
    evaluate     Run a YAML test suite against an agent
    compare      A/B test two agents on a YAML test suite
    sample-size  Plan the per-variant sample size for an A/B test
    report       Print a saved evaluation report

Usage:
    evalkit evaluate arithmetic --agent-url http://localhost:8000
    evalkit evaluate suite.yaml --adapter subprocess --agent-command "python -m my_agent"
    evalkit evaluate suite.yaml --baseline /tmp/evalkit/report.json
    evalkit compare suite.yaml --control-url http://a:8000 --treatment-url http://b:8000
    evalkit sample-size --baseline 0.7 --effect 0.05
    evalkit report /tmp/evalkit/report.json
"""

from __future__ import annotations

import argparse
import json
import logging
import shlex
import sys
from pathlib import Path

from .adapters.base import Agent


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _print_evaluation(result, pass_threshold: float) -> None:
    """Print a human-readable summary of an EvaluationResult."""
    print("=" * 60)
    print(f"Evaluation {result.evaluation_id} ({result.agent_name})")
    print("=" * 60)
    print(f"Tests:      {result.passed_tests}/{result.total_tests} passed")
    print(f"Accuracy:   {result.accuracy or 0.0:.2%}  (threshold {pass_threshold:.0%})")
    if result.avg_latency_ms is not None:
        print(f"Latency:    avg {result.avg_latency_ms:.1f}ms, p95 {result.p95_latency_ms:.1f}ms")
    if result.quality_score is not None:
        print(f"Quality:    {result.quality_score:.3f}")
    for name, aggregate in sorted(result.aggregated_metrics.items()):
        fields = ", ".join(f"{k}={v:.3f}" for k, v in aggregate.items())
        print(f"  {name}: {fields}")
    errors = result.metadata.get("errors", [])
    if errors:
        print(f"Errors:     {len(errors)}")
        for err in errors[:5]:
            print(f"  - {err[:100]}")
    verdict = "PASS" if (result.accuracy or 0.0) >= pass_threshold else "FAIL"
    print(f"Result:     {verdict}")


def _cmd_evaluate(args: argparse.Namespace) -> int:
    """Run a test suite against one agent, optionally checking for regressions."""
    from .core.evaluator import EvaluationResult, Evaluator
    from .core.metrics import create_metrics
    from .regression.detector import RegressionDetector, Severity
    from .suites.loader import load_suite

    _setup_logging(args.verbose)

    try:
        suite = load_suite(args.suite)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    errors = suite.validate()
    if errors:
        print(f"Error: invalid suite {suite.id}:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        return 1

    agent = _create_agent(args.adapter, args.agent_url, args.agent_command)
    if agent is None:
        print("Error: Could not create agent adapter. See --adapter options.", file=sys.stderr)
        return 1

    evaluator = Evaluator(agent, metrics=create_metrics(suite.scoring.metrics))
    result = evaluator.evaluate(suite.cases, evaluation_id=args.evaluation_id)
    _print_evaluation(result, suite.scoring.pass_threshold)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = output_dir / "report.json"
    with open(report_path, "w") as f:
        json.dump(result.to_dict(), f, indent=2)
    print(f"\nReport saved to {report_path}")

    if not args.baseline:
        return 0

    baseline_path = Path(args.baseline)
    if not baseline_path.exists():
        print(f"Error: Baseline file not found: {baseline_path}", file=sys.stderr)
        return 1
    with open(baseline_path) as f:
        baseline = EvaluationResult.from_dict(json.load(f))

    detector = RegressionDetector(thresholds=suite.scoring.regression_thresholds, baseline=baseline)
    regressions = detector.detect(result)
    if not regressions:
        print(f"\nNo regressions against baseline {baseline.evaluation_id}")
        return 0

    print(f"\nRegressions against baseline {baseline.evaluation_id}:")
    for reg in regressions:
        print(
            f"  {reg.metric_name}: {reg.baseline_value:.4g} -> {reg.current_value:.4g} "
            f"({reg.degradation_percent:.1f}% worse, {reg.severity.value})"
        )
    if any(reg.severity == Severity.CRITICAL for reg in regressions):
        return 1
    return 0


def _cmd_compare(args: argparse.Namespace) -> int:
    """A/B test two HTTP agents on a suite."""
    from .core.metrics import create_metrics
    from .experiments.ab_test import ABTest
    from .suites.loader import load_suite

    _setup_logging(args.verbose)

    try:
        suite = load_suite(args.suite)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    control = _create_agent("http", args.control_url, "")
    treatment = _create_agent("http", args.treatment_url, "")

    extra = [m for m in create_metrics(suite.scoring.metrics) if m.name() not in ("accuracy", "latency")]
    metrics = ["accuracy", "latency_ms"] + [m.name() for m in extra]
    test = ABTest(
        name=f"{suite.id}-ab",
        control_agent=control,
        treatment_agent=treatment,
        metrics=metrics,
        significance_level=args.alpha,
        test_type=args.test_type,
        extra_metrics=extra,
        seed=args.seed,
    )
    results = test.run(suite.cases, sample_size=args.sample_size)

    print("=" * 60)
    print(f"A/B test {test.name}: control={args.control_url} treatment={args.treatment_url}")
    print("=" * 60)
    for metric, result in results.items():
        low, high = result.confidence_interval
        print(
            f"{metric:>16}: control {result.control.mean:.4f} vs treatment "
            f"{result.treatment.mean:.4f} | p={result.p_value:.4f} "
            f"d={result.effect_size:.3f} CI=[{low:.4f}, {high:.4f}] "
            f"winner={result.winner() or '-'}"
        )

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = output_dir / "ab_report.json"
    with open(report_path, "w") as f:
        json.dump(test.get_summary(), f, indent=2)
    print(f"\nReport saved to {report_path}")
    return 0


def _cmd_sample_size(args: argparse.Namespace) -> int:
    """Print the per-variant sample size for an A/B test."""
    from .experiments.ab_test import calculate_sample_size

    try:
        n = calculate_sample_size(
            args.baseline, args.effect, alpha=args.alpha, power=args.power, std_dev=args.std
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Required sample size per variant: {n}")
    return 0


def _cmd_report(args: argparse.Namespace) -> int:
    """Print a saved evaluation report."""
    report_path = Path(args.report_file)
    if not report_path.exists():
        print(f"Error: Report file not found: {report_path}", file=sys.stderr)
        return 1

    with open(report_path) as f:
        data = json.load(f)

    print(json.dumps(data, indent=2))
    return 0


def _create_agent(adapter_type: str, agent_url: str, agent_command: str) -> Agent | None:
    """Create an agent adapter from CLI options."""
    if adapter_type == "subprocess":
        from .adapters.subprocess_adapter import SubprocessAgent

        cmd = shlex.split(agent_command or "")
        if not cmd:
            print("Error: --agent-command required for subprocess adapter", file=sys.stderr)
            return None
        return SubprocessAgent(command=cmd)

    elif adapter_type == "http":
        from .adapters.http_adapter import HttpAgent

        return HttpAgent(base_url=agent_url or "http://localhost:8000")

    else:
        print(f"Error: Unknown adapter type: {adapter_type}", file=sys.stderr)
        return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="evalkit",
        description="Evaluation and optimization engine for AI agents",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- evaluate ---
    eval_parser = subparsers.add_parser("evaluate", help="Run a YAML test suite against an agent")
    eval_parser.add_argument("suite", help="Suite YAML path or bundled suite id")
    eval_parser.add_argument(
        "--adapter", choices=["http", "subprocess"], default="http", help="Agent adapter type"
    )
    eval_parser.add_argument("--agent-url", default="http://localhost:8000", help="Agent HTTP URL")
    eval_parser.add_argument("--agent-command", default="", help="Agent subprocess command")
    eval_parser.add_argument("--evaluation-id", default="", help="Evaluation id (default: uuid)")
    eval_parser.add_argument("--output-dir", default="/tmp/evalkit", help="Output directory")
    eval_parser.add_argument("--baseline", default="", help="Baseline report JSON for regressions")

    # --- compare ---
    cmp_parser = subparsers.add_parser("compare", help="A/B test two HTTP agents on a suite")
    cmp_parser.add_argument("suite", help="Suite YAML path or bundled suite id")
    cmp_parser.add_argument("--control-url", required=True, help="Control agent HTTP URL")
    cmp_parser.add_argument("--treatment-url", required=True, help="Treatment agent HTTP URL")
    cmp_parser.add_argument(
        "--test-type", choices=["t_test", "mann_whitney"], default="t_test", help="Statistical test"
    )
    cmp_parser.add_argument("--sample-size", type=int, default=0, help="Cases to use (0 = all)")
    cmp_parser.add_argument("--alpha", type=float, default=0.05, help="Significance level")
    cmp_parser.add_argument("--seed", type=int, default=None, help="Shuffle/bootstrap seed")
    cmp_parser.add_argument("--output-dir", default="/tmp/evalkit-ab", help="Output directory")

    # --- sample-size ---
    ss_parser = subparsers.add_parser("sample-size", help="Plan A/B test sample size")
    ss_parser.add_argument("--baseline", type=float, required=True, help="Baseline metric mean")
    ss_parser.add_argument("--effect", type=float, required=True, help="Minimum detectable effect")
    ss_parser.add_argument("--alpha", type=float, default=0.05, help="Significance level")
    ss_parser.add_argument("--power", type=float, default=0.8, help="Statistical power")
    ss_parser.add_argument("--std", type=float, default=None, help="Std dev (default 25%% of baseline)")

    # --- report ---
    rpt_parser = subparsers.add_parser("report", help="Print a saved report")
    rpt_parser.add_argument("report_file", help="Path to report JSON file")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    handlers = {
        "evaluate": _cmd_evaluate,
        "compare": _cmd_compare,
        "sample-size": _cmd_sample_size,
        "report": _cmd_report,
    }

    handler = handlers.get(args.command)
    if handler:
        sys.exit(handler(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
