"""Per-product tool configuration.

Products can override the auth and settings tools use (email account, social
handles, API keys, ...). Lookups fall back from the product's
``products/<id>/tools.json`` to the workspace-wide ``tools.json``.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field, ValidationError

from ..schemas.base import BaseSchema

logger = logging.getLogger(__name__)

TOOL_CONFIG_FILE = "tools.json"
DEFAULT_SENDER_NAME = "MarketClaw"
CONFIG_SECTIONS = ("email", "resend", "twitter", "linkedin", "producthunt", "images", "calendar")


class _Section(BaseSchema):
    model_config = ConfigDict(extra="allow")


class EmailSection(_Section):
    account: Optional[str] = Field(default=None, description="Himalaya account name")
    from_: Optional[str] = Field(default=None, alias="from", description="Default sender address")


class ResendSection(_Section):
    api_key: Optional[str] = Field(default=None, alias="apiKey")
    from_email: Optional[str] = Field(default=None, alias="fromEmail")
    from_name: Optional[str] = Field(default=None, alias="fromName")


class TwitterSection(_Section):
    handle: Optional[str] = None
    cookie_profile: Optional[str] = Field(default=None, alias="cookieProfile")


class LinkedInSection(_Section):
    profile_urn: Optional[str] = Field(default=None, alias="profileUrn")
    access_token: Optional[str] = Field(default=None, alias="accessToken")


class ProductHuntSection(_Section):
    dev_token: Optional[str] = Field(default=None, alias="devToken")


class ImagesSection(_Section):
    output_dir: Optional[str] = Field(default=None, alias="outputDir")
    default_style: Optional[str] = Field(default=None, alias="defaultStyle")


class CalendarSection(_Section):
    calendar_id: Optional[str] = Field(default=None, alias="calendarId")


class ProductToolConfig(BaseSchema):
    """Tool overrides for one product, or the workspace-wide defaults."""

    email: Optional[EmailSection] = None
    resend: Optional[ResendSection] = None
    twitter: Optional[TwitterSection] = None
    linkedin: Optional[LinkedInSection] = None
    producthunt: Optional[ProductHuntSection] = None
    images: Optional[ImagesSection] = None
    calendar: Optional[CalendarSection] = None
    env: Optional[Dict[str, str]] = None

    def sections(self) -> List[str]:
        """Names of the configured sections, ``env`` excluded."""
        return [name for name in CONFIG_SECTIONS if getattr(self, name) is not None]


class ToolConfigStore:
    """
    File-backed store of ``ProductToolConfig`` documents for one workspace.

    Unreadable or invalid files are logged and treated as absent, so a broken
    product config never stops a tool from falling back to the global one.
    """

    def __init__(self, workspace: Path | str) -> None:
        self._workspace = Path(workspace).expanduser()

    @property
    def global_config_path(self) -> Path:
        return self._workspace / TOOL_CONFIG_FILE

    def product_config_path(self, product_id: str) -> Path:
        """
        Path of a product's config file, always directly under ``<workspace>/products``.

        Raises:
            ValueError: If ``product_id`` is not a single plain path component.
        """
        if (
            not product_id
            or product_id in (".", "..")
            or "/" in product_id
            or "\\" in product_id
            or "\x00" in product_id
        ):
            raise ValueError(f"Invalid product id: {product_id!r}")
        products_dir = (self._workspace / "products").resolve()
        product_dir = (products_dir / product_id).resolve()
        if product_dir.parent != products_dir:
            raise ValueError(f"Invalid product id: {product_id!r}")
        return self._workspace / "products" / product_id / TOOL_CONFIG_FILE

    def _load(self, path: Path) -> Optional[ProductToolConfig]:
        if not path.exists():
            return None
        try:
            return ProductToolConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable tool config {path}: {e}")
            return None

    def _save(self, path: Path, config: ProductToolConfig) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(config.to_wire(), indent=2), encoding="utf-8")

    def get_product_config(self, product_id: str) -> Optional[ProductToolConfig]:
        return self._load(self.product_config_path(product_id))

    def get_global_config(self) -> Optional[ProductToolConfig]:
        return self._load(self.global_config_path)

    def save_product_config(self, product_id: str, config: ProductToolConfig) -> None:
        self._save(self.product_config_path(product_id), config)
        logger.info(f"Saved tool config for product {product_id}")

    def save_global_config(self, config: ProductToolConfig) -> None:
        self._save(self.global_config_path, config)
        logger.info("Saved global tool config")

    def list_product_ids(self) -> List[str]:
        """Products that have a config file, sorted."""
        products_dir = self._workspace / "products"
        if not products_dir.is_dir():
            return []
        return sorted(p.parent.name for p in products_dir.glob(f"*/{TOOL_CONFIG_FILE}"))

    def get_tool_config(self, section: str, product_id: Optional[str] = None) -> Optional[_Section]:
        """
        Resolve one section, preferring the product's value over the global one.

        Raises:
            ValueError: If ``section`` is not a known configuration section.
        """
        if section not in CONFIG_SECTIONS:
            raise ValueError(f"Unknown tool config section: {section}")
        if product_id:
            product = self.get_product_config(product_id)
            if product is not None and getattr(product, section) is not None:
                return getattr(product, section)
        glob = self.get_global_config()
        return getattr(glob, section) if glob is not None else None

    def resolve_env(self, product_id: Optional[str] = None) -> Dict[str, str]:
        """Process environment overlaid with the global, then the product ``env`` map."""
        env = dict(os.environ)
        glob = self.get_global_config()
        if glob is not None and glob.env:
            env.update(glob.env)
        if product_id:
            product = self.get_product_config(product_id)
            if product is not None and product.env:
                env.update(product.env)
        return env

    def get_himalaya_account(self, product_id: Optional[str] = None) -> Optional[str]:
        config = self.get_tool_config("email", product_id)
        return config.account if config is not None else None

    def get_resend_config(self, product_id: Optional[str] = None) -> Optional[Dict[str, Optional[str]]]:
        """Resend API key and formatted sender (``Name <address>``)."""
        config = self.get_tool_config("resend", product_id)
        if config is None:
            return None
        sender = None
        if config.from_email:
            sender = f"{config.from_name or DEFAULT_SENDER_NAME} <{config.from_email}>"
        return {"api_key": config.api_key, "from": sender}

    def get_twitter_config(self, product_id: Optional[str] = None) -> Optional[Dict[str, Optional[str]]]:
        config = self.get_tool_config("twitter", product_id)
        if config is None:
            return None
        return {"handle": config.handle, "profile": config.cookie_profile}

    def get_linkedin_config(self, product_id: Optional[str] = None) -> Optional[Dict[str, Optional[str]]]:
        config = self.get_tool_config("linkedin", product_id)
        if config is None:
            return None
        return {"urn": config.profile_urn, "token": config.access_token}
