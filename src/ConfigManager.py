"""
ConfigManager - Configuration loading and validation

This module loads and validates configuration from multiple sources:
- Environment variables (config/.env file): OCR overrides and the JSON configuration file name
- JSON configuration file (defaults to config/config.json): OCR settings, analysis limits, lexicon files
- Lexicon files (config/lexicon-*.json): versioned keyword lists for the threat classifier

The configuration directory is the config_dir argument, else $SCANNER_CONFIG_DIR,
else ./config under the working directory. Metrics go to tmp/ beside it.

Configuration Structure:
    config/
    ├── .env                      # Environment variables (optional)
    ├── config.json               # Main configuration
    ├── lexicon-phishing.json     # Phishing / social-engineering keywords
    ├── lexicon-malware.json      # Malware / unsafe-software keywords
    └── lexicon-financial.json    # Financial transaction keywords

Configuration Flow:
    1. Load environment variables from .env
    2. Parse config.json sections (ocr, analysis, lexicons)
    3. Apply OCR_* environment overrides on top of the ocr section
    4. Validate values
    5. Load every lexicon file referenced by the lexicons section

Lexicons live outside the code so keyword updates only need a new file and a
restart.
"""
import os
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional
from dotenv import load_dotenv
from LoggerSetup import setup_logger
from RiskTypes import LEXICON_CATEGORIES

_logger = setup_logger(__name__)

_LANGUAGES_PATTERN = re.compile(r'^[a-z_]{2,8}(\+[a-z_]{2,8})*$')
_TRUE_VALUES = ('1', 'true', 'yes', 'on')
_FALSE_VALUES = ('0', 'false', 'no', 'off')


@dataclass
class OcrSettings:
    """OCR options supplied by the settings panel.

    Attributes:
        enabled: Whether local OCR may run at all
        use_as_backup: Whether OCR replaces a failed remote analysis
        languages: '+' separated language codes (e.g. "ind+eng")
        enhanced_processing: Preprocess the frame when variations are off
        create_variations: OCR every alternate rendering of the frame
        min_confidence: Minimum OCR confidence on a 0-1 scale
    """
    enabled: bool = True
    use_as_backup: bool = True
    languages: str = 'ind+eng'
    enhanced_processing: bool = True
    create_variations: bool = True
    min_confidence: float = 0.3


def _parse_bool(raw, key: str) -> bool:
    if isinstance(raw, bool):
        return raw
    value = str(raw).strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for '{key}': {raw!r}")


def _parse_float(raw, key: str) -> float:
    if isinstance(raw, bool):
        raise ValueError(f"Invalid number for '{key}': {raw!r}")
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid number for '{key}': {raw!r}")


class ConfigManager:
    """Manages configuration from environment variables and JSON configuration files.

    Loads and validates configuration on initialization:
    - OCR settings (config.json values, then OCR_* environment overrides)
    - Analysis timeout and cache expiry
    - Keyword lexicons for every classifier category
    """

    # Environment variable -> (OcrSettings field, parser)
    ENV_OVERRIDES = {
        'OCR_ENABLED': ('enabled', _parse_bool),
        'OCR_USE_AS_BACKUP': ('use_as_backup', _parse_bool),
        'OCR_LANGUAGES': ('languages', lambda raw, key: str(raw).strip()),
        'OCR_ENHANCED_PROCESSING': ('enhanced_processing', _parse_bool),
        'OCR_CREATE_VARIATIONS': ('create_variations', _parse_bool),
        'OCR_MIN_CONFIDENCE': ('min_confidence', _parse_float),
    }

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize by loading environment variables and the JSON configuration.

        Args:
            config_dir: Directory holding .env, config.json and lexicon files.
                        Defaults to $SCANNER_CONFIG_DIR, then ./config in the
                        working directory.

        Raises:
            ValueError: If the config file is missing or any value is invalid
        """
        self.config_dir = self.resolve_config_dir(config_dir)
        self.project_root = self.config_dir.parent

        self.env_path = self.config_dir / ".env"
        load_dotenv(dotenv_path=self.env_path)

        self.tmp_dir = self.project_root / "tmp"
        self.tmp_dir.mkdir(parents=True, exist_ok=True)

        # Lexicon file cache to avoid re-parsing a file referenced twice
        self._keyword_cache: Dict[str, List[str]] = {}
        self.lexicon_versions: Dict[str, str] = {}

        self.config_file = os.getenv('SCANNER_CONFIG_FILE', 'config.json')
        config = self._load_config(self.config_dir / self.config_file)

        self.ocr = self._load_ocr_settings(config.get('ocr', {}))

        analysis = config.get('analysis', {})
        self.analysis_timeout = _parse_float(analysis.get('timeout_seconds', 30), 'analysis.timeout_seconds')
        expiry_minutes = _parse_float(analysis.get('cache_expiry_minutes', 30), 'analysis.cache_expiry_minutes')
        if self.analysis_timeout <= 0:
            raise ValueError(f"'analysis.timeout_seconds' must be positive, got {self.analysis_timeout}")
        if expiry_minutes <= 0:
            raise ValueError(f"'analysis.cache_expiry_minutes' must be positive, got {expiry_minutes}")
        self.cache_expiry_seconds = expiry_minutes * 60

        self.lexicons = self._load_lexicons(config.get('lexicons'))

        _logger.info(
            f"Loaded configuration: OCR {'enabled' if self.ocr.enabled else 'disabled'} "
            f"({self.ocr.languages}), {sum(len(v) for v in self.lexicons.values())} lexicon keywords"
        )

    @staticmethod
    def resolve_config_dir(config_dir: Optional[Path] = None) -> Path:
        """Pick the configuration directory.

        An explicit directory wins, then SCANNER_CONFIG_DIR, then ./config.
        The .env file lives inside this directory, so it cannot choose it.
        """
        if config_dir:
            return Path(config_dir).expanduser().resolve()
        env_dir = os.getenv('SCANNER_CONFIG_DIR', '').strip()
        if env_dir:
            return Path(env_dir).expanduser().resolve()
        return Path.cwd() / "config"

    def _load_config(self, config_file: Path) -> Dict:
        """Read the JSON configuration file.

        Raises:
            ValueError: If the file does not exist or is not a JSON object
        """
        if not config_file.exists():
            raise ValueError(f"Config file {config_file} not found")

        with open(config_file, 'r', encoding='utf-8') as f:
            config = json.load(f)

        if not isinstance(config, dict):
            raise ValueError(f"Config file {config_file} must contain a JSON object")
        return config

    def _load_ocr_settings(self, section: Dict) -> OcrSettings:
        """Build OcrSettings from the ocr section plus environment overrides."""
        if not isinstance(section, dict):
            raise ValueError("'ocr' must be an object")

        settings = OcrSettings()
        for field_name, parser in (
            ('enabled', _parse_bool),
            ('use_as_backup', _parse_bool),
            ('enhanced_processing', _parse_bool),
            ('create_variations', _parse_bool),
            ('min_confidence', _parse_float),
        ):
            if field_name in section:
                setattr(settings, field_name, parser(section[field_name], f"ocr.{field_name}"))
        if 'languages' in section:
            settings.languages = str(section['languages']).strip()

        for env_key, (field_name, parser) in self.ENV_OVERRIDES.items():
            raw = os.getenv(env_key)
            if raw is not None and raw.strip() != '':
                setattr(settings, field_name, parser(raw, env_key))
                _logger.info(f"OCR setting '{field_name}' overridden by {env_key}")

        if not 0 <= settings.min_confidence <= 1:
            raise ValueError(f"'min_confidence' must be between 0 and 1, got {settings.min_confidence}")

        settings.languages = settings.languages.lower()
        if not _LANGUAGES_PATTERN.match(settings.languages):
            raise ValueError(
                f"Invalid OCR languages '{settings.languages}': expected codes joined by '+', e.g. 'ind+eng'"
            )
        return settings

    def _load_lexicons(self, lexicon_config) -> Dict[str, List[str]]:
        """Resolve the lexicons section into category -> keyword list.

        Each category maps to a filename or a list of filenames in the config
        directory. Keywords from several files are merged in order.

        Raises:
            ValueError: If the section is missing, a category is missing, or a file is invalid
        """
        if not isinstance(lexicon_config, dict):
            raise ValueError("'lexicons' must be an object mapping categories to lexicon files")

        missing = [category for category in LEXICON_CATEGORIES if category not in lexicon_config]
        if missing:
            raise ValueError(f"Missing lexicon files for: {', '.join(missing)}")

        lexicons: Dict[str, List[str]] = {}
        for category in LEXICON_CATEGORIES:
            files = lexicon_config[category]
            if isinstance(files, str):
                files = [files]
            if not isinstance(files, list) or not all(isinstance(name, str) for name in files):
                raise ValueError(f"Lexicon '{category}' must be a filename or an array of filenames")

            keywords: List[str] = []
            for filename in files:
                keywords.extend(self._load_keyword_file(filename))
            if not keywords:
                _logger.warning(f"Lexicon '{category}' is empty, it will never match")
            lexicons[category] = list(dict.fromkeys(keywords))
        return lexicons

    def _load_keyword_file(self, filename: str) -> List[str]:
        """Load keywords from a lexicon JSON file in the config directory.

        Expected JSON format:
        {
            "version": "2026.10.1",
            "keywords": ["keyword1", "multi word keyword", "kata kunci"]
        }

        Returns:
            List[str]: Keyword strings (not deduplicated at this stage)

        Raises:
            ValueError: If file doesn't exist or has invalid format
        """
        if filename in self._keyword_cache:
            return self._keyword_cache[filename]

        kw_file = self.config_dir / filename

        if not kw_file.exists():
            raise ValueError(f"Lexicon file not found: {filename}")

        try:
            with open(kw_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in lexicon file {filename}: {e}")

        if not isinstance(data, dict) or 'keywords' not in data:
            raise ValueError(f"Invalid lexicon file format in {filename}: missing 'keywords' key")

        keywords = data['keywords']
        if not isinstance(keywords, list):
            raise ValueError(f"Invalid lexicon file format in {filename}: 'keywords' must be an array")

        if not all(isinstance(kw, str) for kw in keywords):
            raise ValueError(f"Invalid lexicon file format in {filename}: all keywords must be strings")

        self.lexicon_versions[filename] = str(data.get('version', 'unversioned'))
        self._keyword_cache[filename] = keywords
        _logger.debug(f"Loaded {len(keywords)} keywords from {filename} (version {self.lexicon_versions[filename]})")
        return keywords
