"""
CLI entry point for Infragate.

This module provides the Typer-based command-line interface for Infragate.

Commands:
    check          Evaluate a single manifest or resource change
    plan           Evaluate every resource change of a Terraform JSON plan
    admit          Answer a Kubernetes AdmissionReview
    validate       Load policy sources and report configuration errors
    list-policies  Show the loaded policies

Policy sources come from --policy (repeatable) or the INFRAGATE_POLICY_PATH
environment variable (os.pathsep-separated). A policy source that fails to
load aborts the command: evaluation never runs with a partial rule set.

Exit codes:
    0  allowed (and, with --strict, no soft-mandatory violations)
    1  denied, or the command could not run
"""

import json
import sys
import traceback
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
import yaml
from rich.console import Console

from infragate import __version__
from infragate.context import DEFAULT_ENVIRONMENT_TAG, build_context
from infragate.engine import PolicyEngine, malformed_input_decision
from infragate.errors import ConfigError, MalformedInputError
from infragate.log import configure_logging
from infragate.registry import PolicyRegistry
from infragate.report import (
    build_admission_response,
    generate_json_report,
    generate_plan_json_report,
    print_decision,
    print_plan_report,
    print_policy_table,
)
from infragate.schema import Decision, load_document, load_document_from_string

POLICY_PATH_ENVVAR = "INFRAGATE_POLICY_PATH"

app = typer.Typer(
    name="infragate",
    help="Gate infrastructure changes against governance policies.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()

PolicyOption = Annotated[
    Optional[list[Path]],
    typer.Option(
        "--policy",
        "-p",
        help="Policy file or directory. Can be repeated.",
        envvar=POLICY_PATH_ENVVAR,
    ),
]
EnvironmentTagOption = Annotated[
    str,
    typer.Option(
        "--environment-tag",
        help="Tag used as the environment (namespace) of Terraform resources.",
    ),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output results in JSON format.")]
StrictOption = Annotated[
    bool,
    typer.Option("--strict", help="Also fail on soft-mandatory violations."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", help="Enable verbose output.")]
DebugOption = Annotated[
    bool,
    typer.Option("--debug", help="Enable debug logging and full error tracebacks."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]infragate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    Infragate - Policy gate for AI/ML infrastructure.

    Evaluate Terraform plans and Kubernetes admission requests against
    advisory, soft-mandatory and hard-mandatory policies.
    """
    pass


# =============================================================================
# Evaluation Commands
# =============================================================================


@app.command()
def check(
    resource_path: Annotated[
        str,
        typer.Argument(help="Manifest or resource change (YAML/JSON). Use '-' for stdin."),
    ],
    policy: PolicyOption = None,
    environment_tag: EnvironmentTagOption = DEFAULT_ENVIRONMENT_TAG,
    json_output: JsonOption = False,
    strict: StrictOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Evaluate a single resource against the policies.

    Example:
        $ infragate check deployment.yaml --policy policies/
    """
    configure_logging(verbose, debug)
    engine = _load_engine(policy, environment_tag, json_output, debug)
    raw = _read_document(resource_path, json_output, debug)

    try:
        context = build_context(raw, environment_tag)
    except MalformedInputError as e:
        context = None
        decision = malformed_input_decision(e)
    else:
        decision = engine.check(context)

    if json_output:
        print(generate_json_report(decision, context))
    else:
        print_decision(decision, context, console)

    raise typer.Exit(code=0 if _passes(decision, strict) else 1)


@app.command()
def plan(
    plan_path: Annotated[
        str,
        typer.Argument(help="Terraform plan JSON (terraform show -json). Use '-' for stdin."),
    ],
    policy: PolicyOption = None,
    environment_tag: EnvironmentTagOption = DEFAULT_ENVIRONMENT_TAG,
    json_output: JsonOption = False,
    strict: StrictOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Evaluate every resource change of a Terraform plan.

    Example:
        $ terraform show -json tfplan > tfplan.json
        $ infragate plan tfplan.json --policy policies/
    """
    configure_logging(verbose, debug)
    engine = _load_engine(policy, environment_tag, json_output, debug)
    raw = _read_document(plan_path, json_output, debug)

    verdicts = engine.check_plan(raw)

    if json_output:
        print(generate_plan_json_report(verdicts))
    else:
        print_plan_report(verdicts, console)

    passed = all(_passes(v.decision, strict) for v in verdicts)
    raise typer.Exit(code=0 if passed else 1)


@app.command()
def admit(
    review_path: Annotated[
        str,
        typer.Argument(help="AdmissionReview request (JSON/YAML). Use '-' for stdin."),
    ],
    policy: PolicyOption = None,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Answer a Kubernetes AdmissionReview.

    Prints the AdmissionReview response as JSON. The verdict is carried in
    the response, so the command exits 0 whenever a response is produced.

    Example:
        $ infragate admit review.json --policy policies/
    """
    configure_logging(verbose, debug)
    engine = _load_engine(policy, DEFAULT_ENVIRONMENT_TAG, True, debug)
    review = _read_document(review_path, True, debug)

    decision = engine.check_resource(review)
    print(json.dumps(build_admission_response(review, decision), indent=2))


# =============================================================================
# Policy Commands
# =============================================================================


@app.command()
def validate(
    policy: PolicyOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Load the policy sources and report any configuration error.

    Example:
        $ infragate validate --policy policies/
    """
    configure_logging(debug=debug)
    engine = _load_engine(policy, DEFAULT_ENVIRONMENT_TAG, json_output, debug)

    if json_output:
        print(json.dumps({"valid": True, "policies": engine.registry.names()}, indent=2))
    else:
        console.print(f"[green]✓[/green] {len(engine.registry)} policies loaded without errors")


@app.command("list-policies")
def list_policies(
    policy: PolicyOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show the loaded policies in declaration order."""
    configure_logging()
    engine = _load_engine(policy, DEFAULT_ENVIRONMENT_TAG, json_output, False)

    if json_output:
        output = {
            "policies": [
                {
                    "name": p.name,
                    "enforcement_level": p.enforcement_level.value,
                    "description": p.description,
                    "kinds": p.scope.kinds,
                    "namespaces": p.scope.namespaces,
                    "source": p.source,
                }
                for p in engine.registry
            ],
            "count": len(engine.registry),
        }
        print(json.dumps(output, indent=2))
    else:
        print_policy_table(engine.registry, console)


# =============================================================================
# Helpers
# =============================================================================


def _passes(decision: Decision, strict: bool) -> bool:
    """Exit-code rule: denied fails; with strict, pending overrides fail too."""
    if not decision.allowed:
        return False
    return not (strict and decision.overridable)


def _load_engine(
    policy_paths: list[Path] | None,
    environment_tag: str,
    json_output: bool,
    debug: bool,
) -> PolicyEngine:
    """Load the registry or exit; never continue with a partial rule set."""
    if not policy_paths:
        _fail(
            "no_policy_sources",
            f"No policy sources given. Use --policy or set {POLICY_PATH_ENVVAR}.",
            json_output,
            debug,
        )

    try:
        registry = PolicyRegistry.load(policy_paths)
    except ConfigError as e:
        _fail("policy_load_error", str(e), json_output, debug, details=e.to_dict())

    return PolicyEngine(registry, environment_tag=environment_tag)


def _read_document(path: str, json_output: bool, debug: bool) -> Any:
    """
    Read a YAML/JSON document from a file or stdin.

    A document that is not valid YAML/JSON, or not decodable, is returned
    as None so that it is evaluated (and denied) as malformed input.
    """
    try:
        if path == "-":
            return load_document_from_string(sys.stdin.buffer.read())
        return load_document(Path(path))
    except OSError as e:
        _fail("input_read_error", f"Cannot read {path}: {e}", json_output, debug)
    except (yaml.YAMLError, ValueError):
        if debug and not json_output:
            console.print(traceback.format_exc(), style="dim", markup=False)
        return None


def _fail(
    error_type: str,
    message: str,
    json_output: bool,
    debug: bool,
    details: dict[str, Any] | None = None,
) -> NoReturn:
    """Report an error and exit with code 1."""
    if json_output:
        output: dict[str, Any] = {
            "error": True,
            "error_type": error_type,
            "message": message,
        }
        if details:
            output["details"] = details
        if debug:
            output["traceback"] = traceback.format_exc()
        print(json.dumps(output, indent=2))
    else:
        console.print(f"Error: {message}", style="red", markup=False)
        if debug:
            console.print(traceback.format_exc(), style="dim", markup=False)
    raise typer.Exit(code=1)
