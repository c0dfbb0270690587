# ================================================================
# File     : utils.py
# Purpose  : Common helpers for PasskeyPoodle (console, files, config, data)
# Notes    : British English; witty output; colorama + tabulate
# ================================================================

import os
import csv
import json
import uuid
import random
import pathlib
from typing import Any, Dict, Iterable, List, Optional

from colorama import Fore, Style, init as _colorama_init
from tabulate import tabulate

_colorama_init(autoreset=True)

DEBUG_ENABLED = False
_PROGRESS_OPEN = False  # a progress line is on screen without its newline

# ================================================================
# Function: fncSetDebug
# Purpose : Globally enable/disable debug output
# Notes   : Called from main after config + CLI are merged
# ================================================================
def fncSetDebug(enabled: bool) -> None:
    global DEBUG_ENABLED
    DEBUG_ENABLED = bool(enabled)


# ================================================================
# Function: fncPrintMessage
# Purpose : Standardised console output with levels and colours
# Notes   : Levels: info, warn, error, success, debug
# ================================================================
def fncPrintMessage(message: str, level: str = "info") -> None:
    if level == "debug" and not DEBUG_ENABLED:
        return
    colours = {
        "info": Fore.CYAN,
        "warn": Fore.YELLOW,
        "error": Fore.RED,
        "success": Fore.GREEN,
        "debug": Fore.MAGENTA
    }
    prefix = {
        "info": "[•]",
        "warn": "[!]",
        "error": "[✗]",
        "success": "[✓]",
        "debug": "[∆]"
    }
    colour = colours.get(level, "")
    mark = prefix.get(level, "[ ]")
    _fncCloseProgress()
    print(f"{colour}{mark} {message}{Style.RESET_ALL}")


# ================================================================
# Function: fncPrintProgress
# Purpose : Single-line progress indicator for per-user work
# Notes   : Rewrites the same console line; newline on the last item.
#           Any message printed mid-run starts on a fresh line.
# ================================================================
def fncPrintProgress(index: int, total: int, label: str = "") -> None:
    global _PROGRESS_OPEN
    if total <= 0:
        return
    pct = int(index * 100 / total)
    line = f"{Fore.CYAN}[•] Sniffing {index}/{total} ({pct}%) {label}{Style.RESET_ALL}"
    end = "\n" if index >= total else ""
    # pad so a shorter UPN fully overwrites a longer one
    print(f"\r{line:<100}", end=end, flush=True)
    _PROGRESS_OPEN = index < total


def _fncCloseProgress() -> None:
    global _PROGRESS_OPEN
    if _PROGRESS_OPEN:
        print()
        _PROGRESS_OPEN = False


# ================================================================
# Function: fncDisplayBanner
# Purpose : Display PasskeyPoodle banner in rainbow colours
# Notes   : Poodle mascot sits to the right of the title 🐩
# ================================================================
def fncDisplayBanner(version: str = "v1.0"):
    banner_lines = [
        " ___             _             ___           _ _     ",
        "| _ \\__ _ ______| |_____ _  _ | _ \\___  ___ __| | |___ ",
        "|  _/ _` (_-<_-<| / / -_) || ||  _/ _ \\/ _ / _` | / -_)",
        "|_| \\__,_/__/__/|_\\_\\___|\\_, ||_| \\___/\\___\\__,_|_\\___|",
        "                         |__/                          ",
    ]

    poodle_lines = [
        "   _     /)---(\\   ",
        "   \\   (/ . . \\)  ",
        "    \\__)-\\(*)/    ",
        "     \\_       (_   ",
        "     (___/-(____)   "
    ]

    colours = [Fore.RED, Fore.YELLOW, Fore.GREEN, Fore.BLUE]

    def rainbow(text: str) -> str:
        """Cycle through colours for a rainbow effect"""
        out = ""
        for i, ch in enumerate(text):
            out += colours[i % len(colours)] + ch
        return out + Style.RESET_ALL

    print("\n")
    max_banner_len = max(len(line) for line in banner_lines)
    for i in range(max(len(banner_lines), len(poodle_lines))):
        banner_part = banner_lines[i] if i < len(banner_lines) else ""
        poodle_part = poodle_lines[i] if i < len(poodle_lines) else ""
        print(rainbow(banner_part.ljust(max_banner_len + 5) + poodle_part))

    print(f"{Fore.CYAN}\nPasskeyPoodle {version} — 'No key, no biscuit.'{Style.RESET_ALL}\n")


# ================================================================
# Function: fncBlurb
# Purpose : Display a witty blurb describing the current run
# ================================================================
def fncBlurb(flavour: Optional[str] = None):
    blurbs = [
        "Sniffing the tenant for users without a security key…",
        "Counting passkeys, one paw at a time…",
        "Following the Graph scent trail into Entra…",
    ]
    fncPrintMessage(flavour or random.choice(blurbs), "info")


# ================================================================
# Function: fncEnsureFolder
# Purpose : Create a folder (and parents) if it does not exist
# Notes   : Returns pathlib.Path object; raises OSError on failure
# ================================================================
def fncEnsureFolder(path) -> pathlib.Path:
    p = pathlib.Path(path).expanduser().resolve()
    p.mkdir(parents=True, exist_ok=True)
    return p


# ================================================================
# Function: fncLoadEnv
# Purpose : Read environment variable with default
# Notes   : Strips quotes; returns default if unset
# ================================================================
def fncLoadEnv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name, default)
    if isinstance(val, str):
        return val.strip().strip('"').strip("'")
    return val


# ================================================================
# Function: fncReadJSON
# Purpose : Load JSON from file safely
# Notes   : Returns {} on failure when safe=True
# ================================================================
def fncReadJSON(path: str, safe: bool = True) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as ex:
        if safe:
            fncPrintMessage(f"Could not read JSON '{path}': {ex}", "warn")
            return {}
        raise


# ================================================================
# Function: fncWriteJSON
# Purpose : Write data to JSON with nice formatting
# Notes   : Ensures parent folder exists; UTF-8; 2-space indent
# ================================================================
def fncWriteJSON(path: str, data: Dict[str, Any]) -> None:
    p = pathlib.Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    fncPrintMessage(f"Saved JSON → {p}", "debug")


# ================================================================
# Function: fncExportCSV
# Purpose : Save list[dict] to CSV with a fixed header
# Notes   : Header is always written, even for zero rows.
#           Raises OSError; callers decide how loud to be.
# ================================================================
def fncExportCSV(path, rows: Iterable[Dict[str, Any]], fieldnames: List[str]) -> pathlib.Path:
    p = pathlib.Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
        w.writeheader()
        for r in rows:
            w.writerow({k: ("" if r.get(k) is None else r.get(k)) for k in fieldnames})
    return p


# ================================================================
# Function: fncToTable
# Purpose : Render rows as a table string
# Notes   : Supports list[dict] (keys become headers) or list[list]
# ================================================================
def fncToTable(rows: Iterable[Any], headers: Optional[List[str]] = None) -> str:
    rows = list(rows)

    if not rows:
        return "(no data)"

    if isinstance(rows[0], dict):
        hdrs = headers or sorted({k for r in rows for k in r.keys()})
        table_rows = [[r.get(h, "") for h in hdrs] for r in rows]
        return tabulate(table_rows, headers=hdrs, tablefmt="github")
    else:
        return tabulate(rows, headers=(headers or "firstrow"), tablefmt="github")


# ================================================================
# Function: fncMask
# Purpose : Mask sensitive strings (client secrets, tokens)
# Notes   : Keeps start/end visible; handles short strings
# ================================================================
def fncMask(value: Optional[str], show: int = 4) -> str:
    if not value:
        return ""
    if len(value) <= show * 2:
        return "*" * len(value)
    return f"{value[:show]}{'*' * (len(value) - (show*2))}{value[-show:]}"


# ================================================================
# Function: fncNewRunId
# Purpose : Generate a short unique run identifier
# Notes   : Useful for correlating console output and exports
# ================================================================
def fncNewRunId(prefix: str = "run") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"
