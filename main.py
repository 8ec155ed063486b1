# main.py
"""
CLI entrypoint for azdoc.

- build: read the cached resource inventory, run the analyzers, build the
  topology graph, then write the Markdown document, the draw.io diagrams and
  the JSON/CSV/HTML findings reports, and print a summary table.
- doctor: check that AWS credentials for the Bedrock narrative service work.

Exit code is 1 when the inventory cannot be read or any artifact failed.
"""

import argparse
import logging
import os
from typing import Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from analyzers import run_all
from config import Settings
from exceptions import ArtifactWriteError, InputError
from narrative import NarrativeService
from renderers import DiagramRenderer, MarkdownRenderer
from resources import load_resources
from topology import build_topology
from utils import print_summary, save_report

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("azdoc")


def settings_from_args(args) -> Settings:
    """Environment defaults, overridden by whatever flags were given."""
    settings = Settings.from_env()
    if args.input:
        settings.input_path = args.input
    if args.out:
        settings.out_dir = args.out
    if args.md_name:
        settings.md_name = args.md_name
    if args.no_diagrams:
        settings.with_diagrams = False
    if args.enable_ai:
        settings.enable_ai = True
    if args.region:
        settings.region = args.region
    if args.model_id:
        settings.model_id = args.model_id
    if args.required_tags:
        settings.required_tags = [t.strip() for t in args.required_tags.split(",") if t.strip()]
    if args.subscription:
        settings.subscription = args.subscription
    return settings


def run_build(settings: Settings, print_table: bool = False,
              session: Optional[boto3.Session] = None) -> int:
    """
    Run the whole documentation pipeline. Artifacts are attempted
    independently; returns 1 if any of them failed.
    """
    logger.info("Loading inventory from %s", settings.input_path)
    resources = load_resources(settings.input_path)
    logger.info("Loaded %d resources", len(resources))

    bundle = run_all(resources, settings.required_tags)
    topology = build_topology(resources)
    narrative = NarrativeService(settings, session=session) if settings.enable_ai else None

    artifacts: Dict[str, str] = {}
    failures: List[ArtifactWriteError] = []

    try:
        artifacts["graph"] = topology.save(os.path.join(settings.out_dir, "graph.json"))
    except ArtifactWriteError as e:
        logger.error("%s", e)
        failures.append(e)

    markdown = MarkdownRenderer(settings, narrative)
    try:
        artifacts["markdown"] = markdown.write(markdown.render(bundle, resources, topology))
    except ArtifactWriteError as e:
        logger.error("%s", e)
        failures.append(e)

    if settings.with_diagrams:
        report = DiagramRenderer(settings, narrative).render_all(resources)
        for i, path in enumerate(report.written):
            artifacts[f"diagram {i + 1}"] = path
        failures.extend(report.errors)

    try:
        reports = save_report(bundle, os.path.join(settings.out_dir, "reports"),
                              extra={"input": settings.input_path, "resources": len(resources)})
        artifacts.update({f"report ({k})": v for k, v in reports.items()})
    except ArtifactWriteError as e:
        logger.error("%s", e)
        failures.append(e)

    print_summary(bundle, artifacts, print_full_table=print_table)
    if failures:
        logger.error("%d artifact(s) failed: %s", len(failures), ", ".join(f.artifact for f in failures))
        return 1
    return 0


def run_doctor(region: Optional[str] = None, session: Optional[boto3.Session] = None) -> int:
    """
    Check AWS credentials with STS. Credentials are expected to come from the
    environment (profile, SSO or injected variables).
    """
    settings = Settings.from_env()
    region = region or settings.region
    session = session or boto3.Session(region_name=region)
    try:
        identity = session.client("sts", region_name=region).get_caller_identity()
    except (ClientError, BotoCoreError) as e:
        logger.error("AWS credentials check failed: %s", e)
        return 1
    logger.info("AWS account %s, caller %s", identity.get("Account"), identity.get("Arn"))
    logger.info("Narrative service: model %s in %s (enabled=%s)", settings.model_id, region, settings.enable_ai)
    return 0


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Document an Azure subscription: analysis report, Markdown and draw.io diagrams."
    )
    sub = p.add_subparsers(dest="command", required=True)

    b = sub.add_parser("build", help="Analyze the inventory and write all artifacts")
    b.add_argument("--input", help="Path to the cached resource inventory JSON (env: AZDOC_INPUT)")
    b.add_argument("--out", help="Output directory (env: AZDOC_OUT, default: ./docs)")
    b.add_argument("--md-name", help="Markdown file name (default: SUBSCRIPTION.md)")
    b.add_argument("--no-diagrams", action="store_true", help="Skip draw.io diagram generation")
    b.add_argument("--enable-ai", action="store_true", help="Use Amazon Bedrock for narrative and insights")
    b.add_argument("--region", help="AWS region for Bedrock (env: AWS_REGION)")
    b.add_argument("--model-id", help="Bedrock model id (env: BEDROCK_MODEL_ID)")
    b.add_argument("--required-tags", help="Comma-separated required tag keys")
    b.add_argument("--subscription", help="Subscription label used in document titles")
    b.add_argument("--print-table", action="store_true", help="Print the full findings table to stdout")

    d = sub.add_parser("doctor", help="Check AWS credentials for the narrative service")
    d.add_argument("--region", help="AWS region (optional)")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    if args.command == "doctor":
        return run_doctor(region=args.region)

    settings = settings_from_args(args)
    try:
        settings.validate()
    except ValueError as e:
        raise SystemExit(f"Invalid settings: {e}")
    try:
        return run_build(settings, print_table=args.print_table)
    except InputError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
