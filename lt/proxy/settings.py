import os
import re
from dataclasses import dataclass, field
from lt.common.errors import ConfigurationError

DEFAULT_LABEL_API_URL = "https://api.ods.od.nih.gov/dsld/v9"
DEFAULT_VISION_API_URL = "https://api.moondream.ai/v1"

# Some deploy dashboards save the URL with the verb in front ("POST https://...")
_METHOD_PREFIX = re.compile(r"^(GET|POST|PUT|DELETE)\s+", re.IGNORECASE)


def clean_api_url(raw):
    return _METHOD_PREFIX.sub("", raw or "").strip().rstrip("/")


@dataclass(frozen=True)
class ProxySettings:
    label_api_key: str | None = None
    label_api_url: str = DEFAULT_LABEL_API_URL
    vision_api_key: str | None = None
    vision_api_url: str = DEFAULT_VISION_API_URL
    problems: tuple = field(default=(), compare=False)

    # Reads the environment once at startup. Nothing here raises; missing keys are collected into `problems` and
    # answered per request with a 500 before any upstream call is made.
    @staticmethod
    def from_env(environ=None):
        environ = os.environ if environ is None else environ
        label_key = environ.get("DSLD_API_KEY") or None
        vision_key = environ.get("VISION_API_KEY") or environ.get("MOONDREAM_API_KEY") or None

        problems = []
        if label_key is None:
            problems.append(ConfigurationError("DSLD_API_KEY", "DSLD_API_KEY not set in environment"))
        if vision_key is None:
            problems.append(ConfigurationError("VISION_API_KEY", "Vision API key not configured"))

        return ProxySettings(
            label_api_key=label_key,
            label_api_url=clean_api_url(environ.get("DSLD_API_URL")) or DEFAULT_LABEL_API_URL,
            vision_api_key=vision_key,
            vision_api_url=clean_api_url(environ.get("VISION_API_URL")) or DEFAULT_VISION_API_URL,
            problems=tuple(problems),
        )

    def problem_for(self, setting):
        for problem in self.problems:
            if problem.setting == setting:
                return problem
        return None
