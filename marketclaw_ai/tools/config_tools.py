from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List

from .base import Tool, ToolResult
from .config import CONFIG_SECTIONS, ProductToolConfig, ToolConfigStore


@dataclass(frozen=True)
class GetToolConfigTool:
    """Show a product's tool configuration, or the global one when no product is given."""

    store: ToolConfigStore
    name: str = "get_tool_config"
    description: str = "Get tool configuration for a product (email accounts, social handles, API keys)"
    parameters: ClassVar[Dict[str, Any]] = {
        "type": "object",
        "properties": {
            "productId": {"type": "string", "description": "Product ID (global configuration if not specified)"},
        },
    }

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        product_id = params.get("productId")
        if not product_id:
            config = self.store.get_global_config()
            data = config.to_wire() if config is not None else {"note": "No global config set"}
            return ToolResult.ok("Global tool configuration", data=data)

        try:
            config = self.store.get_product_config(product_id)
        except ValueError as e:
            return ToolResult.fail(f"Failed to get tool config: {e}")
        data = config.to_wire() if config is not None else {"note": "No product-specific config. Using defaults."}
        return ToolResult.ok(f"Tool config for {product_id}", data=data)


@dataclass(frozen=True)
class SetToolConfigTool:
    """
    Replace one section of a product's tool configuration.

    Other sections of the product config are left as they are.
    """

    store: ToolConfigStore
    name: str = "set_tool_config"
    description: str = "Set tool configuration for a product"
    parameters: ClassVar[Dict[str, Any]] = {
        "type": "object",
        "properties": {
            "productId": {"type": "string", "description": "Product ID"},
            "category": {
                "type": "string",
                "enum": list(CONFIG_SECTIONS),
                "description": "Tool category to configure",
            },
            "settings": {"type": "object", "description": "Settings object (varies by category)"},
        },
        "required": ["productId", "category", "settings"],
    }

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        product_id = params.get("productId")
        if not product_id:
            return ToolResult.fail("No product specified. Set a product first.")

        category = params.get("category")
        if category not in CONFIG_SECTIONS:
            return ToolResult.fail(f"Unknown config category: {category}. Expected one of: {', '.join(CONFIG_SECTIONS)}")

        settings = params.get("settings")
        if not isinstance(settings, dict):
            return ToolResult.fail("settings must be an object")

        try:
            current = self.store.get_product_config(product_id) or ProductToolConfig()
            merged = {**current.to_wire(), category: settings}
            config = ProductToolConfig.model_validate(merged)
            self.store.save_product_config(product_id, config)
        except (OSError, ValueError) as e:
            return ToolResult.fail(f"Failed to set tool config: {e}")

        section = getattr(config, category)
        return ToolResult.ok(
            f"Updated {category} config for {product_id}",
            data={category: section.to_wire() if section is not None else None},
        )


@dataclass(frozen=True)
class ListProductConfigsTool:
    store: ToolConfigStore
    name: str = "list_product_configs"
    description: str = "List which products have tool configurations"
    parameters: ClassVar[Dict[str, Any]] = {"type": "object", "properties": {}}

    async def execute(self, params: Dict[str, Any]) -> ToolResult:
        configs = []
        for product_id in self.store.list_product_ids():
            config = self.store.get_product_config(product_id)
            categories = config.sections() if config is not None else []
            configs.append({"productId": product_id, "hasConfig": config is not None, "categories": categories})
        return ToolResult.ok(f"Found {len(configs)} product(s)", data=configs)


def build_config_tools(store: ToolConfigStore) -> List[Tool]:
    """Instantiate the tool-configuration tools against ``store``."""
    return [GetToolConfigTool(store), SetToolConfigTool(store), ListProductConfigsTool(store)]
