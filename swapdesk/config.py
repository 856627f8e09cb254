import os
import yaml
import copy
import logging

log = logging.getLogger(__name__)
log.setLevel(logging.INFO)

ENV_PREFIX = "SWAPDESK_"
# credentials and ids stay strings even when they look numeric
STRING_KEY_SUFFIXES = ("_token", "_secret", "_id", "_key", "_url")


class Config:
    _instance = None
    _initialized = False

    _defaults = {
        "bot": {
            "name": "Swapdesk",
            "holdings_display_limit": 10,
        },
        "session": {
            "backend": "sqlite",
            "ttl_seconds": 3600,
            "key_prefix": "user",
            "redis_url": "redis://localhost:6379/0",
        },
        "database": {
            "db_path": "swapdesk.db",
        },
        "telegram": {
            "bot_token": "",
            "webhook_secret": "",
            "webhook_url": "",
            "register_webhook": False,
            "api_url": "https://api.telegram.org",
            "host": "0.0.0.0",
            "port": 8080,
        },
        "trading": {
            "base_url": "https://lite-api.jup.ag",
            "api_key": "",
            "timeout": 30,
        },
        "custody": {
            "base_url": "https://api.privy.io",
            "auth_url": "https://auth.privy.io",
            "app_id": "",
            "app_secret": "",
            "signer_id": "",
            "timeout": 30,
        },
        "ledger": {
            "rpc_url": "https://api.mainnet-beta.solana.com",
            "confirm_timeout_seconds": 60,
        },
        "fees": {
            "oracle_url": "",
            "min_compute_unit_price": 10_000,
            "max_compute_unit_price": 70_000,
            "max_compute_units": 1_400_000,
        },
        "limits": {
            "price_guard_pct": 5,
            "min_notional_usd": 5,
        },
        "logging": {
            "log_level": "INFO",
            "log_file_path": "swapdesk.log",
        }
    }

    _reboot_only_keys = {
        "session.backend",
        "database.db_path",
    }

    def __new__(cls, path="config.yaml"):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, path="config.yaml"):
        if self.__class__._initialized:
            return
        self._path = path
        self._load()
        self.__class__._initialized = True

    def _load(self):
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except FileNotFoundError:
            log.warning(
                f"Failed to open config file {self._path}, reverting to defaults")
            raw = {}

        raw = self._deep_merge(copy.deepcopy(self._defaults), raw)
        raw = self._apply_env_overrides(raw)
        self._validate(raw)

        self._apply(raw)

        self._reboot_snapshot = {
            key: self._get_nested(raw, key.split("."))
            for key in self._reboot_only_keys
        }

    def _apply(self, raw):
        self._raw = raw

        self.bot = raw["bot"]
        self.session = raw["session"]
        self.database = raw["database"]
        self.telegram = raw["telegram"]
        self.trading = raw["trading"]
        self.custody = raw["custody"]
        self.ledger = raw["ledger"]
        self.fees = raw["fees"]
        self.limits = raw["limits"]
        self.logging = raw["logging"]

    def reload(self):
        with open(self._path, "r", encoding="utf-8") as f:
            new_raw = yaml.safe_load(f) or {}

        new_raw = self._deep_merge(copy.deepcopy(self._defaults), new_raw)
        new_raw = self._apply_env_overrides(new_raw)
        self._validate(new_raw)

        for key, old_val in self._reboot_snapshot.items():
            new_val = self._get_nested(new_raw, key.split("."))
            if new_val != old_val:
                raise RuntimeError(
                    f"Cannot change reboot-only config key '{key}' at runtime")

        self._apply(new_raw)

    def _apply_env_overrides(self, raw):
        overrides = {}
        for key, val in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue
            path = key[len(ENV_PREFIX):].lower().split("__")
            if path[-1].endswith(STRING_KEY_SUFFIXES):
                self._set_nested(overrides, path, val)
            else:
                self._set_nested(overrides, path, self._coerce(val))
        return self._deep_merge(raw, overrides)

    def _set_nested(self, d, path, value):
        for key in path[:-1]:
            d = d.setdefault(key, {})
        d[path[-1]] = value

    def _get_nested(self, d, path):
        for key in path:
            d = d.get(key, {})
        return d if not isinstance(d, dict) else copy.deepcopy(d)

    def _coerce(self, val):
        if val.lower() in ("true", "false"):
            return val.lower() == "true"
        if val.isdigit():
            return int(val)
        try:
            return float(val)
        except ValueError:
            return val

    def _deep_merge(self, base, extra):
        merged = dict(base)
        for k, v in extra.items():
            if isinstance(v, dict) and isinstance(merged.get(k), dict):
                merged[k] = self._deep_merge(merged[k], v)
            else:
                merged[k] = v
        return merged

    def _validate(self, cfg):
        assert cfg["session"]["backend"] in ("memory", "sqlite", "redis"), \
            "session.backend must be one of memory, sqlite, redis"
        assert isinstance(cfg["session"]["ttl_seconds"],
                          int), "session.ttl_seconds must be int"
        assert cfg["session"]["ttl_seconds"] > 0, "session.ttl_seconds must be positive"
        assert cfg["database"]["db_path"], "database.db_path is required"
        assert isinstance(cfg["telegram"]["port"], int), "telegram.port must be int"
        assert cfg["trading"]["base_url"], "trading.base_url is required"
        assert cfg["ledger"]["rpc_url"], "ledger.rpc_url is required"
        fees = cfg["fees"]
        assert fees["min_compute_unit_price"] <= fees["max_compute_unit_price"], \
            "fees.min_compute_unit_price must not exceed fees.max_compute_unit_price"
        assert isinstance(fees["max_compute_units"],
                          int), "fees.max_compute_units must be int"
