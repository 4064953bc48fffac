import json
import os
from pathlib import Path
from typing import Any

from gami_vaults.core.constants.chains import DEFAULT_SUPPORTED_CHAINS

_CONFIG_ENV_KEYS = ("GAMI_VAULTS_CONFIG_PATH", "GAMI_VAULTS_CONFIG")
_DEFAULT_CONFIG_FILENAME = "config.json"

AUGUST_API_BASE_URL = "https://api.augustdigital.io/api/v1"
IPOR_FUSION_API_URL = "https://api.ipor.io/fusion/vaults"
LAGOON_MAINNET_SUBGRAPH_URL = (
    "https://api.goldsky.com/api/public/project_cmbrqvox367cy01y96gi91bis"
    "/subgraphs/lagoon-mainnet-vault/prod/gn"
)
DEFAULT_PROVIDER_PRIORITY = ("ipor", "upshift")


def _find_project_root(start: Path) -> Path | None:
    cur = start.resolve()
    for parent in [cur, *cur.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def _project_root() -> Path | None:
    return _find_project_root(Path.cwd()) or _find_project_root(Path(__file__).parent)


def resolve_config_path(path: str | Path | None = None) -> Path:
    if path is not None:
        return Path(path).expanduser()

    env_path = next(
        (os.getenv(k, "").strip() for k in _CONFIG_ENV_KEYS if os.getenv(k)), ""
    )
    if env_path:
        p = Path(env_path).expanduser()
        if p.is_absolute():
            return p
        root = _project_root()
        return (root / p) if root else p

    root = _project_root()
    return (root / _DEFAULT_CONFIG_FILENAME) if root else Path(_DEFAULT_CONFIG_FILENAME)


def load_config_json(
    path: str | Path | None = None, *, require_exists: bool = False
) -> dict[str, Any]:
    cfg_path = resolve_config_path(path)
    if not cfg_path.exists():
        if require_exists:
            raise FileNotFoundError(f"Config file not found: {cfg_path}")
        return {}
    try:
        return json.loads(cfg_path.read_text())
    except (OSError, json.JSONDecodeError):
        return {}


CONFIG: dict[str, Any] = load_config_json()


def set_config(config: dict[str, Any]) -> None:
    """Replace the global CONFIG dict in-place.

    Modules that imported CONFIG at import time keep seeing updates.
    """
    CONFIG.clear()
    CONFIG.update(config)


def load_config(
    path: str | Path | None = None, *, require_exists: bool = False
) -> None:
    """Load config from disk into the global CONFIG dict."""
    set_config(load_config_json(path, require_exists=require_exists))


def _section(name: str) -> dict[str, Any]:
    value = CONFIG.get(name)
    return value if isinstance(value, dict) else {}


def set_rpc_urls(rpc_urls: dict[str, Any]) -> None:
    CONFIG.setdefault("rpc_urls", {})
    CONFIG["rpc_urls"] = rpc_urls


def get_rpc_urls() -> dict[str, Any]:
    return CONFIG.get("rpc_urls", {})


def get_rpc_url(chain_id: int) -> str | None:
    mapping = get_rpc_urls()
    rpcs = mapping.get(str(chain_id))
    if rpcs is None:
        rpcs = mapping.get(chain_id)  # allow int keys
    if isinstance(rpcs, list):
        rpcs = rpcs[0] if rpcs else None
    if rpcs:
        return str(rpcs).strip()
    env_value = os.environ.get(f"RPC_{chain_id}")
    return env_value.strip() if env_value else None


def get_august_api_base_url() -> str:
    url = _section("providers").get("august_api_base_url")
    if url:
        return str(url).strip().rstrip("/")
    return AUGUST_API_BASE_URL


def get_ipor_api_url() -> str:
    url = _section("providers").get("ipor_api_url")
    if url:
        return str(url).strip()
    return IPOR_FUSION_API_URL


def get_lagoon_subgraph_url(chain_id: int) -> str | None:
    urls = _section("providers").get("lagoon_subgraph_urls") or {}
    url = urls.get(str(chain_id)) or urls.get(chain_id)
    if url:
        return str(url).strip()
    if int(chain_id) == 1:
        return LAGOON_MAINNET_SUBGRAPH_URL
    return None


def get_supported_chains() -> list[int]:
    chains = CONFIG.get("supported_chains")
    if isinstance(chains, list) and chains:
        return [int(c) for c in chains]
    return list(DEFAULT_SUPPORTED_CHAINS)


def get_provider_priority() -> list[str]:
    priority = _section("providers").get("priority")
    if isinstance(priority, list) and priority:
        return [str(p).strip().lower() for p in priority]
    return list(DEFAULT_PROVIDER_PRIORITY)


def is_provider_enabled(provider: str) -> bool:
    provider = str(provider).lower()
    disabled = _section("providers").get("disabled") or []
    if provider in {str(p).lower() for p in disabled}:
        return False
    env_flag = os.environ.get(f"ENABLE_{provider.upper()}")
    if env_flag is not None and env_flag.strip().lower() == "false":
        return False
    return True
