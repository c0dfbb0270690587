# ================================================================
# File     : modules/entra/fido2_audit.py
# Purpose  : Find Entra users with no FIDO2 security key registered
#            - list users (optionally by UPN domain, server-side)
#            - per-user authentication method lookup
#            - console table + optional CSV export
# Notes    : Follows the run(client, args) signature
# ================================================================

from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

from core import config
from core.utils import fncPrintMessage, fncPrintProgress, fncToTable, fncNewRunId
from core.exports import fncExportReport, REPORT_FIELDS
from handlers.graph.client import GraphError
from handlers.graph.auth_methods import AuthMethodKind, fncParseAuthMethods, fncHasKind

REQUIRED_PERMS = ["User.Read.All", "UserAuthenticationMethod.Read.All"]

USER_FIELDS = "id,displayName,userPrincipalName"
PAGE_SIZE = 999

ProgressCallback = Callable[[int, int, str], None]


class DirectoryError(Exception):
    """Listing users from the directory failed."""


class AuditOutcome(Enum):
    """Result of auditing one user"""

    LACKS_FIDO2 = auto()
    HAS_FIDO2 = auto()
    SKIPPED = auto()


# --------------------------- User Lister ---------------------------

def normalise_domain_filter(value: Optional[str]) -> Optional[str]:
    """'contoso.com' and '@contoso.com' both become '@contoso.com'; blank means no filter."""
    if value is None:
        return None
    suffix = str(value).strip()
    if not suffix:
        return None
    return suffix if suffix.startswith("@") else f"@{suffix}"


def _odata_quote(value: str) -> str:
    return value.replace("'", "''")


def list_users(client, domain_filter: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Return every user (all pages), optionally only those whose UPN ends
    with the domain suffix. The filter is pushed down to Graph; there is
    no client-side re-check of the suffix.
    """
    params: Dict[str, Any] = {"$select": USER_FIELDS, "$top": PAGE_SIZE}
    headers: Dict[str, str] = {}
    suffix = normalise_domain_filter(domain_filter)
    if suffix:
        # endswith() on userPrincipalName is an advanced query in Graph
        params["$filter"] = f"endswith(userPrincipalName,'{_odata_quote(suffix)}')"
        params["$count"] = "true"
        headers["ConsistencyLevel"] = "eventual"
        fncPrintMessage(f"Fetching users with UPN ending in {suffix}", "info")
    else:
        fncPrintMessage("Fetching all users in the directory", "info")

    try:
        users = client.get_all("users", params=params, headers=headers or None)
    except GraphError as ex:
        scope = f"matching {suffix}" if suffix else "in the directory"
        raise DirectoryError(f"Failed to list users {scope}: {ex}") from ex

    fncPrintMessage(f"{len(users)} users fetched from Entra", "info")
    return users


# -------------------------- Method Auditor -------------------------

def lacks_fido2(client, user: Dict[str, Any]) -> bool:
    """True iff none of the user's registered methods is a FIDO2 security key. Raises GraphError."""
    rows = client.get_all(f"users/{user['id']}/authentication/methods")
    methods = fncParseAuthMethods(rows)
    fncPrintMessage(
        f"{user.get('userPrincipalName')}: {[m.kind.value for m in methods]}",
        "debug",
    )
    return not fncHasKind(methods, AuthMethodKind.FIDO2)


def audit_user(client, user: Dict[str, Any]) -> AuditOutcome:
    try:
        missing = lacks_fido2(client, user)
    except GraphError as ex:
        fncPrintMessage(
            f"Failed to retrieve authentication methods for {user.get('userPrincipalName')}: {ex}",
            "warn",
        )
        return AuditOutcome.SKIPPED
    return AuditOutcome.LACKS_FIDO2 if missing else AuditOutcome.HAS_FIDO2


def audit_users(
    client,
    users: List[Dict[str, Any]],
    progress: Optional[ProgressCallback] = None,
    parallel: int = 1,
) -> List[AuditOutcome]:
    """
    Audit each user once and return outcomes in the same order as `users`.

    With parallel > 1 the lookups run on a bounded thread pool. Outcomes
    are only written from this thread, by index, and `progress` is called
    here with a running completed-count, so it never goes backwards.
    """
    total = len(users)
    outcomes: List[Optional[AuditOutcome]] = [None] * total

    if parallel <= 1:
        for idx, user in enumerate(users, start=1):
            outcomes[idx - 1] = audit_user(client, user)
            if progress:
                progress(idx, total, user.get("userPrincipalName") or "")
    else:
        with ThreadPoolExecutor(max_workers=parallel) as executor:
            futures = {executor.submit(audit_user, client, u): i for i, u in enumerate(users)}
            for done, future in enumerate(as_completed(futures), start=1):
                i = futures[future]
                outcomes[i] = future.result()
                if progress:
                    progress(done, total, users[i].get("userPrincipalName") or "")

    return outcomes  # type: ignore[return-value]


# ----------------------------- Reporter ----------------------------

def build_rows(users: List[Dict[str, Any]], outcomes: List[AuditOutcome]) -> List[Dict[str, Any]]:
    return [
        {
            "DisplayName": u.get("displayName") or "",
            "UserPrincipalName": u.get("userPrincipalName") or "",
            "ID": u.get("id") or "",
        }
        for u, outcome in zip(users, outcomes)
        if outcome is AuditOutcome.LACKS_FIDO2
    ]


def sort_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Stable, case-insensitive ascending sort on DisplayName."""
    return sorted(rows, key=lambda r: (r.get("DisplayName") or "").casefold())


def render_report(rows: List[Dict[str, Any]]) -> None:
    if not rows:
        fncPrintMessage("All audited users have a FIDO2 security key registered.", "success")
        return
    fncPrintMessage(f"{len(rows)} users without a FIDO2 security key:", "warn")
    ordered = sort_rows(rows)
    print(fncToTable(ordered, headers=REPORT_FIELDS))


def _summarise(outcomes: List[AuditOutcome]) -> Dict[str, int]:
    return {
        "Users Audited": len(outcomes),
        "With FIDO2": sum(1 for o in outcomes if o is AuditOutcome.HAS_FIDO2),
        "Without FIDO2": sum(1 for o in outcomes if o is AuditOutcome.LACKS_FIDO2),
        "Skipped (lookup failed)": sum(1 for o in outcomes if o is AuditOutcome.SKIPPED),
    }


# --------------------------- Entry point ---------------------------

def run(client, args, progress: Optional[ProgressCallback] = fncPrintProgress, now: Optional[datetime] = None):
    run_id = fncNewRunId("fido2")
    fncPrintMessage(f"Running FIDO2 Audit (run={run_id})", "info")
    fncPrintMessage(f"Required Graph permissions: {', '.join(REQUIRED_PERMS)}", "debug")

    users = list_users(client, getattr(args, "domain_filter", None))

    parallel = int(getattr(args, "parallel", 1) or 1)
    if parallel > 4:
        fncPrintMessage("Warning: --parallel > 4 may hit Microsoft Graph throttling.", "warn")
    outcomes = audit_users(client, users, progress=progress, parallel=parallel)

    rows = sort_rows(build_rows(users, outcomes))
    skipped = [u.get("userPrincipalName") for u, o in zip(users, outcomes) if o is AuditOutcome.SKIPPED]
    summary = _summarise(outcomes)

    render_report(rows)
    print(fncToTable(
        [{"Field": k, "Value": v} for k, v in summary.items()],
        headers=["Field", "Value"],
    ))
    if skipped:
        fncPrintMessage(f"{len(skipped)} users skipped; they are not in the report.", "warn")

    export_path = fncExportReport(
        rows,
        getattr(args, "output_path", None) or str(config.DEFAULT_OUTPUT_PATH),
        bool(getattr(args, "export_csv", False)),
        now=now,
    )

    fncPrintMessage("FIDO2 Audit module complete.", "success")
    return {
        "provider": "entra",
        "run_id": run_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "summary": summary,
        "users_without_fido2": rows,
        "skipped": skipped,
        "export_path": export_path,
    }
