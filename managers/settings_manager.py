"""Settings and credential management"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger("MCP_Server")

# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "digital-assets-mcp"
CONFIG_FILE = CONFIG_DIR / "config.json"
CREDENTIALS_FILE = CONFIG_DIR / "credentials.json"

TOKEN_KEY = "authToken"
TOKEN_ENV = "DIGITAL_ASSETS_AUTH_TOKEN"
NAMESPACES = ("client", "qr", "barcode")
BARCODE_FORMATS = ("code128", "code39", "ean13", "ean8", "upca", "upce")

ENV_VARS = {
    ("client", "base_url"): ("DIGITAL_ASSETS_BASE_URL", str),
    ("client", "request_timeout"): ("DIGITAL_ASSETS_REQUEST_TIMEOUT", float),
    ("client", "load_timeout"): ("DIGITAL_ASSETS_LOAD_TIMEOUT", float),
    ("qr", "size"): ("DIGITAL_ASSETS_QR_SIZE", int),
    ("barcode", "format"): ("DIGITAL_ASSETS_BARCODE_FORMAT", str),
}


class SettingsManager:
    """Manages settings with precedence: per-call > runtime > config > env > hardcoded.

    Also owns the persisted auth token, stored under the ``authToken`` key.
    """

    def __init__(self, config_file: Path = CONFIG_FILE, credentials_file: Path = CREDENTIALS_FILE):
        self.config_file = Path(config_file)
        self.credentials_file = Path(credentials_file)
        self._runtime_defaults: Dict[str, Dict[str, Any]] = {namespace: {} for namespace in NAMESPACES}
        self._config_defaults = self._load_config_defaults()
        # Token the backend answered 401 to; never sent again
        self._rejected_token: Optional[str] = None
        self._hardcoded_defaults = {
            "client": {
                "base_url": "http://localhost:5021",
                "request_timeout": 30.0,
                "load_timeout": 10.0,
                "history_limit": 10,
            },
            "qr": {
                "size": 300,
                "include_url": True,
            },
            "barcode": {
                "format": "code128",
                "height": 10,
                "scale": 3,
            },
        }

    def _load_config_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Load defaults from config file"""
        defaults: Dict[str, Dict[str, Any]] = {namespace: {} for namespace in NAMESPACES}
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    config = json.load(f)
                for namespace in NAMESPACES:
                    defaults[namespace] = dict(config.get("defaults", {}).get(namespace, {}))
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Failed to load config file {self.config_file}: {e}")
        return defaults

    def _get_env_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Load defaults from environment variables"""
        defaults: Dict[str, Dict[str, Any]] = {namespace: {} for namespace in NAMESPACES}
        for (namespace, key), (env_name, cast) in ENV_VARS.items():
            raw = os.getenv(env_name)
            if not raw:
                continue
            try:
                defaults[namespace][key] = cast(raw)
            except ValueError:
                logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")
        return defaults

    def get_default(self, namespace: str, key: str, provided_value: Any = None) -> Any:
        """Get default value with precedence: provided > runtime > config > env > hardcoded"""
        if provided_value is not None:
            return provided_value

        if key in self._runtime_defaults.get(namespace, {}):
            return self._runtime_defaults[namespace][key]

        if key in self._config_defaults.get(namespace, {}):
            return self._config_defaults[namespace][key]

        env_defaults = self._get_env_defaults()
        if key in env_defaults.get(namespace, {}):
            return env_defaults[namespace][key]

        return self._hardcoded_defaults.get(namespace, {}).get(key)

    def get_all_defaults(self) -> Dict[str, Dict[str, Any]]:
        """Get all effective defaults (merged from all sources)"""
        env_defaults = self._get_env_defaults()
        result = {}
        for namespace in NAMESPACES:
            merged = self._hardcoded_defaults[namespace].copy()
            merged.update(env_defaults.get(namespace, {}))
            merged.update(self._config_defaults.get(namespace, {}))
            merged.update(self._runtime_defaults.get(namespace, {}))
            result[namespace] = merged
        return result

    @property
    def base_url(self) -> str:
        return str(self.get_default("client", "base_url")).rstrip("/")

    @property
    def request_timeout(self) -> float:
        return float(self.get_default("client", "request_timeout"))

    @property
    def load_timeout(self) -> float:
        return float(self.get_default("client", "load_timeout"))

    @property
    def history_limit(self) -> int:
        return int(self.get_default("client", "history_limit"))

    def validate(self, namespace: str, values: Dict[str, Any]) -> list:
        """Return a list of validation errors for the given values"""
        errors = []
        if namespace == "qr" and "size" in values:
            size = values["size"]
            if not isinstance(size, int) or not 100 <= size <= 1000:
                errors.append("QR code size must be between 100 and 1000 pixels")
        if namespace == "barcode":
            if "format" in values and values["format"] not in BARCODE_FORMATS:
                errors.append(
                    f"Invalid barcode format. Supported formats: {', '.join(BARCODE_FORMATS)}"
                )
            if "height" in values and not (isinstance(values["height"], int) and 1 <= values["height"] <= 100):
                errors.append("Barcode height must be between 1 and 100")
            if "scale" in values and not (isinstance(values["scale"], int) and 1 <= values["scale"] <= 10):
                errors.append("Barcode scale must be between 1 and 10")
        if namespace == "client" and "base_url" in values:
            if not str(values["base_url"]).startswith(("http://", "https://")):
                errors.append("base_url must start with http:// or https://")
        return errors

    def set_defaults(self, namespace: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Set runtime defaults for a namespace. Returns validation errors if any."""
        if namespace not in NAMESPACES:
            return {"error": f"Invalid namespace: {namespace}. Must be one of {', '.join(NAMESPACES)}"}

        errors = self.validate(namespace, defaults)
        if errors:
            return {"errors": errors}

        self._runtime_defaults[namespace].update(defaults)
        return {"success": True, "updated": defaults}

    def persist_defaults(self, namespace: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
        """Persist defaults to config file"""
        config = self._read_json(self.config_file)
        config.setdefault("defaults", {}).setdefault(namespace, {}).update(defaults)
        try:
            self._write_json(self.config_file, config)
            self._config_defaults = self._load_config_defaults()
            return {"success": True, "persisted": defaults}
        except IOError as e:
            return {"error": f"Failed to write config file: {e}"}

    def get_auth_token(self) -> Optional[str]:
        """Token from the environment, else the credentials file.

        A token the backend has rejected is skipped wherever it comes from.
        """
        for token in (os.getenv(TOKEN_ENV), self._read_json(self.credentials_file).get(TOKEN_KEY)):
            if token and token != self._rejected_token:
                return token
        return None

    @property
    def env_token_rejected(self) -> bool:
        return self._rejected_token is not None and os.getenv(TOKEN_ENV) == self._rejected_token

    def reject_auth_token(self):
        """Forget the current token after a 401 and clear it from the credentials file"""
        self._rejected_token = self.get_auth_token()
        self.clear_auth_token()

    def set_auth_token(self, token: str):
        credentials = self._read_json(self.credentials_file)
        credentials[TOKEN_KEY] = token
        self._write_json(self.credentials_file, credentials)
        if token == self._rejected_token:
            self._rejected_token = None
        logger.info("Stored auth token in %s", self.credentials_file)

    def clear_auth_token(self):
        credentials = self._read_json(self.credentials_file)
        if credentials.pop(TOKEN_KEY, None) is not None:
            self._write_json(self.credentials_file, credentials)
            logger.info("Cleared stored auth token")

    def _read_json(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to read {path}: {e}")
            return {}

    def _write_json(self, path: Path, data: Dict[str, Any]):
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
