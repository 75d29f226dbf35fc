from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict
import yaml
import os


DEFAULT_IGNORED_PATHS: Tuple[str, ...] = (
    # Version control
    ".git",
    # Dependencies
    "node_modules",
    # Build outputs
    ".next",
    ".nuxt",
    "dist",
    "build",
    ".output",
    # Cache directories
    ".cache",
    ".turbo",
    ".parcel-cache",
    # OS files
    ".DS_Store",
    "Thumbs.db",
    # IDE directories
    ".idea",
    ".vscode",
)

# Directories the model tends to import without a leading "/" or "./"
DEFAULT_BARE_SPECIFIER_DIRS: Tuple[str, ...] = (
    "src",
    "components",
    "hooks",
    "utils",
    "services",
    "contexts",
    "types",
    "lib",
    "pages",
    "features",
    "modules",
    "assets",
    "styles",
    "api",
)

DEFAULT_PROSE_PREFIXES: Tuple[str, ...] = (
    "Here is",
    "Sure,",
    "I'll",
    "Let me",
    "The following",
)


class ParserConfig(BaseModel):
    """Tables and thresholds used by the response parser."""
    model_config = ConfigDict(frozen=True)

    ignored_paths: Tuple[str, ...] = DEFAULT_IGNORED_PATHS
    bare_specifier_dirs: Tuple[str, ...] = DEFAULT_BARE_SPECIFIER_DIRS
    prose_prefixes: Tuple[str, ...] = DEFAULT_PROSE_PREFIXES
    fix_bare_specifiers: bool = True    # Rewrite "src/x" imports to "/src/x" in JS/TS files
    insert_missing_arrows: bool = True  # Insert "=>" in "name: (a) {" and "attr={(a) {"
    min_content_length: int = 10        # Shorter extracted bodies are treated as artifacts
    max_response_size: int = 500000     # Larger responses are refused before parsing


class LoggingConfig(BaseModel):
    """Configuration for parser logging."""
    level: str = "INFO"
    log_file: Optional[str] = None
    console: bool = True


class AppConfig(BaseModel):
    parser: ParserConfig = ParserConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(path: Optional[str] = None) -> AppConfig:
    path = path or os.environ.get("RESPONSE_PARSER_CONFIG", "config.yml")
    if not os.path.exists(path):
        # Return defaults if no config file
        return AppConfig()

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return AppConfig(**raw)
