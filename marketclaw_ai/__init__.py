"""MarketClaw AI tool gateway.

This package contains the tool layer used by MarketClaw agents: the single
place through which every capability is registered, discovered, invoked,
metered and fault-isolated.

High-level architecture
-----------------------

- **Tools**: independently implemented async operations (post, send, search,
  query costs, ...) described to the planner by a name, a description and a
  parameter schema.
- **Budget gate**: an approve/deny oracle consulted before every invocation,
  which also receives the costs tools report afterwards.

Core subpackages
----------------

- ``marketclaw_ai.tools``:

  - ``ToolRegistry``, the dispatch chokepoint.
  - The ``Tool`` protocol and its wire models (``ToolResult``, ``ToolCost``).
  - The ``BudgetGate`` contract and per-product tool configuration.

- ``marketclaw_ai.costs``:

  - ``CostTracker``, the file-backed cost ledger and budget store that
    implements the gate.
  - Administrative cost and budget tools.

- ``marketclaw_ai.core``: settings, logging and Logfire monitoring.

Typical workflow
----------------

Most integrations should start from ``marketclaw_ai.tools.factory.bootstrap``:

1. Build a ``ToolRuntime`` from ``Settings``.
2. Register integration tools with ``initialize_tools``.
3. Hand ``registry.get_definitions()`` to the planner.
4. Dispatch every planner call through ``await registry.execute(...)``.
"""
