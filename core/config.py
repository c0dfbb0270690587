# ================================================================
# File     : config.py
# Purpose  : Configuration management for PasskeyPoodle
# Notes    : Handles initial creation, loading, and CLI/env overrides
#            Precedence: CLI flag > environment > config file > default
# ================================================================

import pathlib
from core.utils import fncPrintMessage, fncEnsureFolder, fncReadJSON, fncWriteJSON, fncLoadEnv

POODLE_HOME = pathlib.Path.home() / ".passkeypoodle"
DEFAULT_CONFIG_PATH = POODLE_HOME / "config.json"
DEFAULT_OUTPUT_PATH = POODLE_HOME / "reports"


# ================================================================
# Function: fncDefaultConfig
# Purpose : Return a default configuration dictionary
# Notes   : Called when config file does not exist
# ================================================================
def fncDefaultConfig() -> dict:
    return {
        "version": "1.0",
        "debug": False,
        "output_path": str(DEFAULT_OUTPUT_PATH),
        "domain_filter": "",
        "parallel": 1,
        "providers": {
            "entra": {
                "tenant_id": "",
                "client_id": "",
                "client_secret": "",
                "authority": "https://login.microsoftonline.com"
            }
        }
    }


# ================================================================
# Function: fncInitConfig
# Purpose : Create or load configuration file
# Notes   : Ensures base folder exists; returns full config dict
# ================================================================
def fncInitConfig(config_path: str = None) -> dict:
    path = pathlib.Path(config_path or DEFAULT_CONFIG_PATH).expanduser()

    fncEnsureFolder(path.parent)

    if not path.exists():
        fncPrintMessage(f"No config found at {path}. Creating default...", "warn")
        fncWriteJSON(str(path), fncDefaultConfig())
    return fncLoadConfig(str(path))


# ================================================================
# Function: fncLoadConfig
# Purpose : Load configuration file and apply environment overrides
# Notes   : Missing keys are back-filled from fncDefaultConfig
# ================================================================
def fncLoadConfig(config_path: str) -> dict:
    cfg = fncDefaultConfig()
    loaded = fncReadJSON(config_path)

    entra_loaded = (loaded.get("providers") or {}).get("entra") or {}
    cfg["providers"]["entra"].update({k: v for k, v in entra_loaded.items() if v is not None})
    for key in ("version", "debug", "output_path", "domain_filter", "parallel"):
        if loaded.get(key) is not None:
            cfg[key] = loaded[key]

    entra = cfg["providers"]["entra"]
    entra.update({
        "tenant_id": fncLoadEnv("ENTRA_TENANT_ID", entra.get("tenant_id")),
        "client_id": fncLoadEnv("ENTRA_CLIENT_ID", entra.get("client_id")),
        "client_secret": fncLoadEnv("ENTRA_CLIENT_SECRET", entra.get("client_secret")),
    })
    cfg["output_path"] = fncLoadEnv("PASSKEYPOODLE_OUTPUT_PATH", cfg.get("output_path"))
    cfg["domain_filter"] = fncLoadEnv("PASSKEYPOODLE_DOMAIN_FILTER", cfg.get("domain_filter"))

    fncPrintMessage(f"Loaded configuration from {config_path}", "debug")
    return cfg


# ================================================================
# Function: fncGetProviderConfig
# Purpose : Return config block for a specific provider
# ================================================================
def fncGetProviderConfig(cfg: dict, provider: str = "entra") -> dict:
    providers = cfg.get("providers", {})
    if provider not in providers:
        fncPrintMessage(f"Provider not found in config: {provider}", "warn")
        return {}
    return providers[provider]


# ================================================================
# Function: fncApplyCliOverrides
# Purpose : Merge command-line flags with the loaded config
# Notes   : Flags left at None fall back to config; the resolved
#           values are written back onto args for the audit module
# ================================================================
def fncApplyCliOverrides(cfg: dict, args) -> dict:
    if getattr(args, "debug", False):
        cfg["debug"] = True
    for key in ("output_path", "domain_filter", "parallel"):
        val = getattr(args, key, None)
        if val is not None:
            cfg[key] = val

    args.output_path = cfg.get("output_path") or str(DEFAULT_OUTPUT_PATH)
    args.domain_filter = cfg.get("domain_filter") or None
    try:
        args.parallel = max(1, int(cfg.get("parallel") or 1))
    except (TypeError, ValueError):
        fncPrintMessage(f"Ignoring invalid parallel value: {cfg.get('parallel')!r}", "warn")
        args.parallel = 1
    return cfg


# ================================================================
# Function: fncIsDebug
# Purpose : Return whether debug mode is enabled in config
# ================================================================
def fncIsDebug(cfg: dict) -> bool:
    return bool(cfg.get("debug", False))
