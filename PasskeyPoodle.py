#!/usr/bin/env python3
# ================================================================
# Tool     : PasskeyPoodle
# Purpose  : Report Entra users without a registered FIDO2 security key
# Notes    : "No key, no biscuit." 🐩
#            Exit 0 on completion; 1 on sign-in or user listing failure
# ================================================================

import sys
import argparse

from core.config import fncInitConfig, fncApplyCliOverrides, fncIsDebug, fncGetProviderConfig
from core.utils import fncPrintMessage, fncSetDebug, fncDisplayBanner, fncBlurb
from handlers.graph.client import GraphClient, AuthError, DEFAULT_AUTHORITY
from modules.entra import fido2_audit
from modules.entra.fido2_audit import DirectoryError

VERSION = "v1.0"


# ================================================================
# Function: fncParseArguments
# Purpose : Define and parse command-line arguments for PasskeyPoodle
# Notes   : Value flags default to None so config/env can fill them
# ================================================================
def fncParseArguments(argv=None):
    parser = argparse.ArgumentParser(
        prog="PasskeyPoodle",
        description="PasskeyPoodle 🐩 — find Entra users without a FIDO2 security key"
    )

    parser.add_argument(
        "--export-csv",
        action="store_true",
        help="Write the report to Users_Without_FIDO2_<date>_<time>.csv"
    )

    parser.add_argument(
        "--output-path",
        default=None,
        help="Directory for the CSV export (default: ~/.passkeypoodle/reports)"
    )

    parser.add_argument(
        "--domain-filter",
        default=None,
        help="Only audit users whose UPN ends with this domain, e.g. contoso.com"
    )

    parser.add_argument(
        "--parallel",
        type=int,
        default=None,
        help="Number of users to look up concurrently (default: 1 = sequential)"
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.json (default: ~/.passkeypoodle/config.json)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug output"
    )

    parser.add_argument(
        "--no-banner",
        action="store_true",
        help="Skip the startup banner"
    )

    return parser.parse_args(argv)


# ================================================================
# Function: fncInitClient
# Purpose : Establish the Graph session from config
# Notes   : Raises AuthError; a missing secret means device code sign-in
# ================================================================
def fncInitClient(cfg: dict) -> GraphClient:
    entra_cfg = fncGetProviderConfig(cfg, "entra")
    if not entra_cfg.get("client_secret"):
        fncPrintMessage("No client secret configured — using delegated device code sign-in.", "warn")
    return GraphClient(
        tenant_id=entra_cfg.get("tenant_id"),
        client_id=entra_cfg.get("client_id"),
        client_secret=entra_cfg.get("client_secret"),
        authority=entra_cfg.get("authority") or DEFAULT_AUTHORITY,
    )


# ================================================================
# Function: main
# Purpose : Main entry point for PasskeyPoodle execution
# Notes   : Returns the process exit code
# ================================================================
def main(argv=None) -> int:
    args = fncParseArguments(argv)

    cfg = fncInitConfig(args.config)
    cfg = fncApplyCliOverrides(cfg, args)
    fncSetDebug(fncIsDebug(cfg))

    if not args.no_banner:
        fncDisplayBanner(VERSION)
        fncBlurb()
    fncPrintMessage("Debug output enabled.", "debug")

    try:
        client = fncInitClient(cfg)
    except AuthError as ex:
        fncPrintMessage(f"Unable to establish Microsoft Graph session: {ex}", "error")
        return 1

    with client:
        try:
            result = fido2_audit.run(client, args)
        except DirectoryError as ex:
            fncPrintMessage(str(ex), "error")
            return 1

    summary = result["summary"]
    fncPrintMessage(
        f"Audit complete (run={result['run_id']}): "
        f"{summary['Without FIDO2']} without FIDO2, "
        f"{summary['Skipped (lookup failed)']} skipped. Tail wag achieved.",
        "success",
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
