"""
Overdue Invoice Notifier -- Configuration Module

Centralizes all configuration for the monthly overdue invoice job.
Loads defaults from dataclasses, then overlays any overrides from config.yaml.

Usage:
    from overdue_notifier.config import get_config
    cfg = get_config()                         # loads config.yaml if present
    cfg = get_config("path/to/custom.yaml")    # loads a specific file
    print(cfg.sender.admin_sender_id)          # "-5"
    print(cfg.notification.subject)            # "Overdue Invoice Notification"
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from .exceptions import ConfigurationError

# ---------------------------------------------------------------------------
# Path constants -- everything relative to the project root
# ---------------------------------------------------------------------------
_THIS_DIR = Path(__file__).resolve().parent          # overdue_notifier/
PROJECT_ROOT = _THIS_DIR.parent                       # repo root
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.yaml"
PACKAGE_TEMPLATE_DIR = _THIS_DIR / "templates"


def _resolve(rel_path: str) -> Path:
    p = Path(rel_path)
    if not p.is_absolute():
        p = PROJECT_ROOT / p
    return p


# ===================================================================
# 1. Sender
# ===================================================================

@dataclass
class SenderConfig:
    """Who the email comes from when the sales rep cannot send it.

    ``admin_sender_id`` is the directory id used as the sentinel sender.
    ``admin_email`` is the address the SMTP transport uses for it.
    """
    admin_sender_id: str = "-5"
    admin_name: str = "Accounts Receivable"
    admin_email: str = "ar@example.com"

    def __post_init__(self):
        # YAML may hand us an int (-5)
        self.admin_sender_id = str(self.admin_sender_id)


# ===================================================================
# 2. Notification content
# ===================================================================

@dataclass
class NotificationConfig:
    """Subject, body template and greeting fallback."""
    subject: str = "Overdue Invoice Notification"
    template_file: str = "overdue_notification.txt"
    template_dir: str = ""          # empty = templates shipped with the package
    sign_off: str = ""              # optional closing line appended to the body
    default_customer_name: str = "Customer"

    @property
    def resolved_template_dir(self) -> Path:
        if not self.template_dir:
            return PACKAGE_TEMPLATE_DIR
        return _resolve(self.template_dir)


# ===================================================================
# 3. Attachment
# ===================================================================

@dataclass
class AttachmentConfig:
    """CSV attachment naming and layout."""
    filename_prefix: str = "Overdue_Invoices"
    timestamp_suffix: bool = True           # avoid name collisions across runs
    include_customer_columns: bool = False  # add Customer Name / Customer Email
    output_dir: str = "output/attachments"

    @property
    def resolved_dir(self) -> Path:
        return _resolve(self.output_dir)


# ===================================================================
# 4. SMTP Settings
# ===================================================================

@dataclass
class SMTPSettings:
    """SMTP transport used when the job runs outside the ERP."""
    host: str = "smtp.gmail.com"
    port: int = 587
    use_tls: bool = True
    username: str = ""        # set via env var SMTP_USERNAME
    password: str = ""        # set via env var SMTP_PASSWORD

    def __post_init__(self):
        self.username = self.username or os.environ.get("SMTP_USERNAME", "")
        self.password = self.password or os.environ.get("SMTP_PASSWORD", "")

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)


# ===================================================================
# 5. Data File Paths
# ===================================================================

@dataclass
class DataFilePaths:
    """Paths to input data files (relative to project root unless absolute)."""
    erp_export_xlsx: str = "data/erp_export.xlsx"

    def resolve(self, rel_path: str) -> Path:
        return _resolve(rel_path)


# ===================================================================
# 6. Output Directory
# ===================================================================

@dataclass
class OutputConfig:
    """Where dry-run .eml files and the job log are written."""
    eml_dir: str = "output/eml"
    log_file: str = "output/overdue_notifier.log"

    @property
    def resolved_eml_dir(self) -> Path:
        return _resolve(self.eml_dir)

    @property
    def resolved_log_file(self) -> Path:
        return _resolve(self.log_file)


# ===================================================================
# Master Config
# ===================================================================

@dataclass
class NotifierConfig:
    """Top-level configuration container for the overdue invoice job."""
    sender: SenderConfig = field(default_factory=SenderConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    attachment: AttachmentConfig = field(default_factory=AttachmentConfig)
    smtp: SMTPSettings = field(default_factory=SMTPSettings)
    data_files: DataFilePaths = field(default_factory=DataFilePaths)
    output: OutputConfig = field(default_factory=OutputConfig)


# ===================================================================
# YAML Loading
# ===================================================================

def _apply_yaml_to_config(cfg: NotifierConfig, data: dict) -> None:
    """Apply a parsed YAML dict onto a NotifierConfig instance."""
    _section_map = {
        "sender": cfg.sender,
        "notification": cfg.notification,
        "attachment": cfg.attachment,
        "smtp": cfg.smtp,
        "data_files": cfg.data_files,
        "output": cfg.output,
    }

    for section_key, section_obj in _section_map.items():
        if section_key in data and isinstance(data[section_key], dict):
            # properties such as resolved_dir are not settable keys
            known = {f.name for f in fields(section_obj)}
            for attr, val in data[section_key].items():
                if attr in known:
                    setattr(section_obj, attr, val)

    # setattr bypasses __post_init__
    cfg.sender.admin_sender_id = str(cfg.sender.admin_sender_id)


def get_config(yaml_path: Optional[str | Path] = None) -> NotifierConfig:
    """Build a NotifierConfig, optionally overlaying values from a YAML file.

    Args:
        yaml_path: Path to a config.yaml file.  If None, looks for the
                   default config.yaml at the project root.  If that file
                   doesn't exist, returns pure defaults.

    Returns:
        Fully populated NotifierConfig instance.

    Raises:
        ConfigurationError: If an explicit path is missing, the file is not
            valid YAML, or its top level is not a mapping.
    """
    cfg = NotifierConfig()

    path = Path(yaml_path) if yaml_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        if yaml_path:
            raise ConfigurationError(f"Config file not found: {path}")
        return cfg

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    _apply_yaml_to_config(cfg, data)

    return cfg
