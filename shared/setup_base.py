# shared/setup_base.py

import os
import json
from typing import Dict, Any, Optional
from redis.asyncio import Redis


class SetupBase:
    """
    Base class for service setup.

    Responsibilities:
      - Load Truth from a JSON file (TRUTH_FILE) or from Redis
      - Extract component definition
      - Inject declared env vars (truth defaults + shell overrides)
      - Pass through structural (non-env) configuration blocks
    """

    # Structural config blocks that should be preserved verbatim
    STRUCTURAL_KEYS = {
        "pairs",
    }

    def __init__(self, service_name: str, logger=None, truth_file: Optional[str] = None):
        self.service_name = service_name
        self.logger = logger
        self.truth_file = truth_file or os.getenv("TRUTH_FILE")

    def log(self, message: str, emoji: str = "ℹ️"):
        if self.logger:
            self.logger.info(message, emoji=emoji)

    def load_truth_file(self, path: str) -> Dict[str, Any]:
        self.log(f"loading Truth from file ({path})", emoji="📥")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            raise RuntimeError(
                f"[setup:{self.service_name}] Truth file '{path}' not found"
            )
        except json.JSONDecodeError as e:
            raise RuntimeError(
                f"[setup:{self.service_name}] Truth file '{path}' is not valid JSON: {e}"
            )

    async def load_truth(self) -> Dict[str, Any]:
        if self.truth_file:
            return self.load_truth_file(self.truth_file)

        truth_url = os.getenv("TRUTH_REDIS_URL", "redis://127.0.0.1:6379")
        truth_key = os.getenv("TRUTH_REDIS_KEY", "truth")

        self.log(
            f"loading Truth from Redis (url={truth_url}, key={truth_key})",
            emoji="📥",
        )

        redis = Redis.from_url(truth_url, decode_responses=True)
        try:
            raw = await redis.get(truth_key)
        finally:
            await redis.aclose()

        if not raw:
            raise RuntimeError(
                f"[setup:{self.service_name}] Truth key '{truth_key}' not found or empty"
            )

        truth = json.loads(raw)
        self.log("Truth loaded successfully", emoji="📄")
        return truth

    async def load(self) -> Dict[str, Any]:
        truth = await self.load_truth()

        components = truth.get("components", {})
        comp = components.get(self.service_name)

        if not comp:
            raise RuntimeError(
                f"[setup:{self.service_name}] component missing in Truth"
            )

        self.log("parsing component definition", emoji="🔍")

        cfg: Dict[str, Any] = {
            "service_name": self.service_name,
            "meta": comp.get("meta", {}),
            "heartbeat": comp.get("heartbeat", {}),
        }

        # --------------------------------------------------
        # Inject declared env vars (truth defaults + shell overrides)
        # --------------------------------------------------
        env_declared = comp.get("env", {})
        if env_declared:
            overridden = 0
            for key, default_value in env_declared.items():
                value = os.getenv(key, default_value)
                cfg[key] = value
                if os.getenv(key) is not None:
                    overridden += 1

            self.log(
                f"injected {len(env_declared)} env vars into config "
                f"({overridden} overridden by shell)",
                emoji="🔧",
            )

        for key in self.STRUCTURAL_KEYS:
            if key in comp:
                cfg[key] = comp[key]
                self.log(
                    f"loaded structural config '{key}'",
                    emoji="🧩",
                )

        await self.extend_config(cfg)

        self.log(f"setup complete for {self.service_name}", emoji="🎉")
        return cfg

    async def extend_config(self, config: Dict[str, Any]):
        """
        Hook for subclasses to extend the config dict.
        Default implementation does nothing.
        """
        pass
