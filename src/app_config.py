"""
Application configuration loaded from config.ini.

Settings are grouped the same way as the file:

    [Gateway]
    FulfillmentBaseUrl = http://localhost:3000
    PrinterBaseUrl = http://localhost:4000
    RequestTimeoutSeconds = 15

    [Worker]
    EntityId = 17
    EntityName = Jane

    [Printing]
    GenerateLabelOnScan = false

    [Browser]
    DefaultStatus = pending
    AssignmentPatchTTLSeconds = 300

A missing file is not an error: every option has a default, so the
dashboard starts against a local gateway and printer service out of the box.
The DISPATCH_API_BASE_URL and DISPATCH_PRINTER_BASE_URL environment
variables override the base URLs from the file.
"""

import os
import configparser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from exceptions import ConfigError
from logger import get_logger

logger = get_logger(__name__)

PICK_LIST_STATUSES = ('pending', 'completed', 'all')

DEFAULT_FULFILLMENT_BASE_URL = "http://localhost:3000"
DEFAULT_PRINTER_BASE_URL = "http://localhost:4000"


@dataclass
class DashboardConfig:
    """
    Resolved configuration for one dashboard instance.

    Attributes:
        fulfillment_base_url: Root URL of the fulfillment gateway (pick lists, updates)
        printer_base_url: Root URL of the local print service
        request_timeout: Upper bound in seconds for every remote call
        entity_id: Entity ID of the worker using this station, if configured
        entity_name: Display name of that worker
        generate_label_on_scan: Scan path prints via generate-and-print instead
                                of reprinting the existing label
        default_status: Pick-list status filter shown on startup
        assignment_patch_ttl: Seconds a local packer assignment survives a
                              disagreeing refresh from the gateway
    """
    fulfillment_base_url: str = DEFAULT_FULFILLMENT_BASE_URL
    printer_base_url: str = DEFAULT_PRINTER_BASE_URL
    request_timeout: float = 15.0
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    generate_label_on_scan: bool = False
    default_status: str = 'pending'
    assignment_patch_ttl: float = 300.0


def load_config(config_path: str = "config.ini") -> DashboardConfig:
    """
    Load configuration from config.ini.

    Args:
        config_path: Path to config.ini file

    Returns:
        DashboardConfig with defaults for every option the file leaves out

    Raises:
        ConfigError: If a value is present but unusable (bad number,
                     non-positive timeout, unknown status)
    """
    parser = configparser.ConfigParser()

    if Path(config_path).exists():
        parser.read(config_path, encoding='utf-8')
        logger.info(f"Configuration loaded from {config_path}")
    else:
        logger.warning(f"Config file not found: {config_path}, using defaults")

    try:
        fulfillment_url = parser.get('Gateway', 'FulfillmentBaseUrl',
                                     fallback=DEFAULT_FULFILLMENT_BASE_URL)
        printer_url = parser.get('Gateway', 'PrinterBaseUrl',
                                 fallback=DEFAULT_PRINTER_BASE_URL)
        timeout = parser.getfloat('Gateway', 'RequestTimeoutSeconds', fallback=15.0)
        generate_on_scan = parser.getboolean('Printing', 'GenerateLabelOnScan', fallback=False)
        patch_ttl = parser.getfloat('Browser', 'AssignmentPatchTTLSeconds', fallback=300.0)
    except ValueError as e:
        raise ConfigError(f"Invalid value in {config_path}: {e}")

    if timeout <= 0:
        raise ConfigError(f"RequestTimeoutSeconds must be positive, got {timeout:g}")

    default_status = parser.get('Browser', 'DefaultStatus', fallback='pending').strip().lower()
    if default_status not in PICK_LIST_STATUSES:
        raise ConfigError(
            f"DefaultStatus must be one of {', '.join(PICK_LIST_STATUSES)}, got '{default_status}'"
        )

    # Environment overrides, for running against a staging gateway
    fulfillment_url = os.environ.get('DISPATCH_API_BASE_URL', fulfillment_url)
    printer_url = os.environ.get('DISPATCH_PRINTER_BASE_URL', printer_url)

    config = DashboardConfig(
        fulfillment_base_url=fulfillment_url.rstrip('/'),
        printer_base_url=printer_url.rstrip('/'),
        request_timeout=timeout,
        entity_id=parser.get('Worker', 'EntityId', fallback='').strip() or None,
        entity_name=parser.get('Worker', 'EntityName', fallback='').strip() or None,
        generate_label_on_scan=generate_on_scan,
        default_status=default_status,
        assignment_patch_ttl=patch_ttl,
    )

    logger.debug(f"Fulfillment gateway: {config.fulfillment_base_url}")
    logger.debug(f"Print gateway: {config.printer_base_url}")
    return config
